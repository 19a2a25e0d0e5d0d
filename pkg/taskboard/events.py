"""
Event bridge: connects drop events from the board UI to store updates.

The gesture layer delivers one terminal DropEvent per drag. This module
resolves it against the current column, applies it under the project's
lock, and notifies subscribers (toasts, activity feeds, sockets).

Events emitted:
    task_created       task_id, project_id, title
    task_moved         task_id, project_id, from_status, to_status, index, message
    column_rebalanced  project_id, status, count
    task_deleted       task_id
    move_rejected      task_id, reason
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from .projector import find_position
from .resolver import MoveResolver
from .schema import DropEvent, Task
from .store import BoardStore, TaskNotFound

logger = logging.getLogger(__name__)


class BoardEventBridge:
    """Routes drop events to board mutations."""

    def __init__(self, store: BoardStore, resolver: Optional[MoveResolver] = None):
        self.store = store
        self.resolver = resolver or store.resolver
        self.subscribers: Dict[str, list] = {}  # event_type -> list of callbacks

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers. A failing callback never undoes a move."""
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception("Error in %s callback", event_type)

    def on_drop(self, drop: DropEvent) -> Task:
        """
        Apply one drop event.

        Raises TaskNotFound (and mutates nothing) if the task is unknown; the
        caller's view is stale and should be re-fetched, not retried.
        """
        current = self.store.get(drop.task_id)
        if current is None:
            self._reject(drop.task_id)

        with self.store.project_lock(current.project_id):
            # Re-read inside the lock; the task may have moved or gone meanwhile
            current = self.store.get(drop.task_id)
            if current is None:
                self._reject(drop.task_id)
            column = self.store.get_tasks(current.project_id)[drop.target_status]
            result = self.resolver.resolve(column, drop)
            task = self.store.apply_move(
                drop.task_id, result.status, result.order, result.rebalanced
            )

        if result.did_rebalance:
            self._emit(
                "column_rebalanced",
                project_id=task.project_id,
                status=task.status,
                count=len(result.rebalanced),
            )
        self._emit(
            "task_moved",
            task_id=task.id,
            project_id=task.project_id,
            from_status=current.status,
            to_status=task.status,
            index=result.index,
            message=f'Moved "{task.title}" to {task.status.label}',
        )
        return task

    def replay(self, drops: Iterable[DropEvent]) -> List[Optional[Task]]:
        """Apply drops in sequence. Unknown tasks yield None instead of raising."""
        results: List[Optional[Task]] = []
        for drop in drops:
            try:
                results.append(self.on_drop(drop))
            except TaskNotFound:
                results.append(None)
        return results

    def create_task(self, project_id: str, title: str, **payload) -> Task:
        """Add a task to the end of To Do."""
        task = self.store.add_task(project_id, title, **payload)
        self._emit("task_created", task_id=task.id, project_id=project_id, title=title)
        return task

    def delete_task(self, task_id: str) -> bool:
        deleted = self.store.delete(task_id)
        if deleted:
            self._emit("task_deleted", task_id=task_id)
        return deleted

    def position_of(self, task: Task) -> Optional[int]:
        """Current index of a task within its column."""
        found = find_position(self.store.get_tasks(task.project_id), task.id)
        return found[1] if found else None

    def _reject(self, task_id: str) -> None:
        logger.warning("Drop for unknown task %s", task_id)
        self._emit("move_rejected", task_id=task_id, reason="not_found")
        raise TaskNotFound(task_id)
