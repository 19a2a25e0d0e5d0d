"""
Board state store (in-memory).

Holds the single authoritative generation of every task. Writes are
last-write-wins per task; callers that read, compute and then write (the
event bridge) hold the project's lock for the whole sequence.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import fields as dataclass_fields
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml

from .projector import ColumnView, project
from .resolver import MoveResolver, rebalance_orders
from .schema import Task, TaskPriority, TaskStatus, to_order

logger = logging.getLogger(__name__)

# Fields owned by the board engine; opaque edits may not touch them
ENGINE_FIELDS = frozenset({"id", "project_id", "status", "order"})


class TaskNotFound(KeyError):
    """Raised when a referenced task is not in the store."""

    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task {self.task_id} not found"


def _copy(task: Task) -> Task:
    return replace(
        task,
        assignees=list(task.assignees),
        tags=list(task.tags),
        subtasks=[dict(s) for s in task.subtasks],
        comments=[dict(c) for c in task.comments],
        attachments=[dict(a) for a in task.attachments],
    )


class BoardStore:
    """In-memory store for board tasks."""

    def __init__(self, tasks: Optional[Iterable[Task]] = None, resolver: Optional[MoveResolver] = None):
        self.resolver = resolver or MoveResolver()
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.RLock()
        self._project_locks: Dict[str, threading.RLock] = {}
        for task in tasks or []:
            self.save(task)

    # ── locking ─────────────────────────────────────────────────────────

    @contextmanager
    def project_lock(self, project_id: str) -> Iterator[None]:
        """Critical section for read-compute-write sequences on one project."""
        with self._lock:
            lock = self._project_locks.setdefault(project_id, threading.RLock())
        with lock:
            yield

    # ── queries ─────────────────────────────────────────────────────────

    def get(self, task_id: str) -> Optional[Task]:
        """Return a copy of the task, or None."""
        with self._lock:
            task = self._tasks.get(task_id)
            return _copy(task) if task else None

    def require(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def all_tasks(self, project_id: Optional[str] = None) -> List[Task]:
        with self._lock:
            return [
                _copy(t) for t in self._tasks.values()
                if project_id is None or t.project_id == project_id
            ]

    def get_tasks(self, project_id: str) -> ColumnView:
        """Ordered per-status view of one project. Never mutates."""
        return project(self.all_tasks(project_id), project_id)

    def list_projects(self) -> Dict[str, int]:
        """Project ids with their task counts."""
        counts: Dict[str, int] = {}
        with self._lock:
            for task in self._tasks.values():
                counts[task.project_id] = counts.get(task.project_id, 0) + 1
        return dict(sorted(counts.items()))

    def get_stats(self, project_id: Optional[str] = None) -> Dict[str, Any]:
        """Board statistics grouped by status, priority, and project."""
        stats: Dict[str, Any] = {
            "total": 0,
            "by_status": {s.value: 0 for s in TaskStatus},
            "by_priority": {p.value: 0 for p in TaskPriority},
            "by_project": {},
            "urgent": 0,
            "completion": 0,
        }
        for task in self.all_tasks(project_id):
            stats["total"] += 1
            stats["by_status"][task.status.value] += 1
            stats["by_priority"][task.priority.value] += 1
            stats["by_project"][task.project_id] = stats["by_project"].get(task.project_id, 0) + 1
            if task.priority == TaskPriority.URGENT and task.status != TaskStatus.DONE:
                stats["urgent"] += 1
        if stats["total"]:
            stats["completion"] = round(100 * stats["by_status"]["done"] / stats["total"])
        return stats

    # ── mutations ───────────────────────────────────────────────────────

    def apply_move(
        self,
        task_id: str,
        status: TaskStatus,
        order: Decimal,
        rebalanced: Optional[Dict[str, Decimal]] = None,
    ) -> Task:
        """
        Set a task's status and order (plus any rebalanced sibling keys).

        All-or-nothing: if the task or any sibling is missing, raises
        TaskNotFound and changes nothing.
        """
        status = TaskStatus.from_str(status)
        order = to_order(order)
        rebalanced = rebalanced or {}
        with self._lock:
            for tid in (task_id, *rebalanced):
                if tid not in self._tasks:
                    logger.warning("Move rejected: task %s not found", tid)
                    raise TaskNotFound(tid)

            for sibling_id, sibling_order in rebalanced.items():
                if sibling_id != task_id:
                    self._tasks[sibling_id].order = to_order(sibling_order)
                    self._tasks[sibling_id].touch()

            task = self._tasks[task_id]
            previous = task.status
            task.status = status
            task.order = order
            task.touch()
            logger.debug(
                "Moved %s: %s -> %s @ %s", task_id, previous.value, status.value, order
            )
            return _copy(task)

    def add_task(self, project_id: str, title: str, **payload) -> Task:
        """Create a task at the end of the project's To Do column."""
        bad = ENGINE_FIELDS & payload.keys()
        if bad:
            raise ValueError(f"Cannot set {', '.join(sorted(bad))} on a new task")
        with self.project_lock(project_id):
            todo = self.get_tasks(project_id)[TaskStatus.TODO]
            with self._lock:
                task = Task(
                    id=self.next_task_id(),
                    project_id=project_id,
                    title=title,
                    status=TaskStatus.TODO,
                    order=self.resolver.append_order(todo),
                    **payload,
                )
                self._tasks[task.id] = task
        logger.info("Created %s in %s", task.id, project_id)
        return _copy(task)

    def save(self, task: Task) -> Task:
        """Insert or replace a task as-is (loaders, external CRUD)."""
        with self._lock:
            self._tasks[task.id] = _copy(task)
        return task

    def update_fields(self, task_id: str, **fields) -> Task:
        """Edit payload fields. Status and order only change through moves."""
        bad = ENGINE_FIELDS & fields.keys()
        if bad:
            raise ValueError(f"Cannot edit {', '.join(sorted(bad))}; use a move")
        with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFound(task_id)
            current = self._tasks[task_id]
            known = {f.name for f in dataclass_fields(Task)}
            for name in fields:
                if name not in known:
                    raise ValueError(f"Unknown task field: {name}")
            updated = replace(current, **fields)
            updated.touch()
            self._tasks[task_id] = updated
            return _copy(updated)

    def delete(self, task_id: str) -> bool:
        """Remove a task. Remaining keys are left as they are."""
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def next_task_id(self) -> str:
        """Next sequential id (task-001, task-002, ...)."""
        with self._lock:
            highest = 0
            for task_id in self._tasks:
                try:
                    highest = max(highest, int(task_id.rsplit("-", 1)[1]))
                except (IndexError, ValueError):
                    continue
            return f"task-{highest + 1:03d}"

    # ── seed data ───────────────────────────────────────────────────────

    @classmethod
    def from_yaml(cls, path: str, resolver: Optional[MoveResolver] = None) -> "BoardStore":
        """Load a mock dataset: a YAML mapping with a `tasks:` list."""
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        tasks = [Task.from_dict(item) for item in raw.get("tasks", [])]
        store = cls(tasks, resolver=resolver)
        store.normalize_columns()
        logger.info("Loaded %d tasks from %s", len(tasks), path)
        return store

    def normalize_columns(self) -> int:
        """Rebalance every column that contains duplicate keys. Returns columns fixed."""
        fixed = 0
        for project_id in self.list_projects():
            with self.project_lock(project_id):
                for status, column in self.get_tasks(project_id).items():
                    if len({t.order for t in column}) == len(column):
                        continue
                    logger.warning(
                        "Duplicate order keys in %s/%s, rebalancing %d tasks",
                        project_id, status.value, len(column),
                    )
                    keys = rebalance_orders(
                        self._insertion_order(column),
                        self.resolver.baseline, self.resolver.step,
                    )
                    with self._lock:
                        for tid, order in keys.items():
                            self._tasks[tid].order = order
                    fixed += 1
        return fixed

    def _insertion_order(self, column: List[Task]) -> List[Task]:
        # Ties keep the order the tasks were loaded in
        position = {tid: i for i, tid in enumerate(self._tasks)}
        return sorted(column, key=lambda t: position[t.id])
