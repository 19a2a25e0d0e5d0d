"""
Task board schema.

Columns:
  To Do → In Progress → Done

Any status is reachable from any other in one move. Position inside a
column is carried by a decimal order key that is only meaningful among
tasks of the same project and status.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Dict, Any


class TaskStatus(Enum):
    """Board columns, in display order."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @property
    def label(self) -> str:
        """Human-readable name ("in progress")."""
        return self.value.replace("-", " ")

    @classmethod
    def from_str(cls, value: str) -> "TaskStatus":
        """Parse a status, tolerating "in_progress" / "In Progress" spellings."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Invalid status: {value!r} (expected one of "
                f"{', '.join(s.value for s in cls)})"
            ) from None


class TaskPriority(Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_str(cls, value: str) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid priority: {value!r}") from None


def to_order(value: Any) -> Decimal:
    """Coerce an order key (Decimal, int, float or numeric string) to Decimal."""
    try:
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        order = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid order key: {value!r}") from None
    if not order.is_finite():
        raise ValueError(f"Order key must be finite: {value!r}")
    return order


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value


@dataclass
class Task:
    """A task on a project board."""

    # Identifiers
    id: str
    project_id: str

    # Board position
    status: TaskStatus = TaskStatus.TODO
    order: Decimal = Decimal(1)

    # Payload (carried along, never inspected by the ordering engine)
    title: str = ""
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    assignees: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    due_date: Optional[datetime] = None
    subtasks: List[Dict[str, Any]] = field(default_factory=list)
    comments: List[Dict[str, Any]] = field(default_factory=list)
    attachments: List[Dict[str, Any]] = field(default_factory=list)

    # Metadata
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        self.status = TaskStatus.from_str(self.status)
        self.priority = TaskPriority.from_str(self.priority)
        self.order = to_order(self.order)

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict. The order key is kept as a string."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "status": self.status.value,
            "order": str(self.order),
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "assignees": list(self.assignees),
            "tags": list(self.tags),
            "due_date": _iso(self.due_date),
            "subtasks": [dict(s) for s in self.subtasks],
            "comments": [dict(c) for c in self.comments],
            "attachments": [dict(a) for a in self.attachments],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from dict (seed files, API payloads)."""
        if not data.get("id"):
            raise ValueError("Task requires an id")
        if not data.get("project_id"):
            raise ValueError(f"Task {data['id']} requires a project_id")

        now = datetime.now(timezone.utc)
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            status=TaskStatus.from_str(data.get("status", "todo")),
            order=to_order(data.get("order", 1)),
            title=data.get("title", ""),
            description=data.get("description", "") or "",
            priority=TaskPriority.from_str(data.get("priority", "medium")),
            assignees=list(data.get("assignees") or []),
            tags=list(data.get("tags") or []),
            due_date=_parse_dt(data.get("due_date")),
            subtasks=list(data.get("subtasks") or []),
            comments=list(data.get("comments") or []),
            attachments=list(data.get("attachments") or []),
            created_at=_parse_dt(data.get("created_at")) or now,
            updated_at=_parse_dt(data.get("updated_at")) or now,
        )


@dataclass(frozen=True)
class DropEvent:
    """
    The terminal event of one drag gesture.

    target_index is the zero-based slot in the destination column as the
    UI saw it at drop time. None means the task was dropped on the column
    itself rather than on a card, which appends it.
    """
    task_id: str
    target_status: TaskStatus
    target_index: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "target_status", TaskStatus.from_str(self.target_status))
        if self.target_index is not None:
            object.__setattr__(self, "target_index", int(self.target_index))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DropEvent":
        """Parse {task_id, status, index} as sent by the gesture layer."""
        task_id = data.get("task_id") or data.get("taskId")
        if not task_id:
            raise ValueError("Drop event requires a task_id")
        status = data.get("status", data.get("target_status", data.get("targetStatus")))
        if status is None:
            raise ValueError("Drop event requires a target status")
        index = data.get("index", data.get("target_index", data.get("targetIndex")))
        try:
            index = None if index is None else int(index)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid target index: {index!r}") from None
        return cls(task_id=str(task_id), target_status=status, target_index=index)
