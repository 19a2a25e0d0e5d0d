"""
Column projection: flat task list → three ordered per-status views.

Pure functions only. Calling project() twice on the same input gives equal
output, so views can be rebuilt on every render.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from .schema import Task, TaskStatus

ColumnView = Dict[TaskStatus, List[Task]]


def order_key(task: Task) -> Tuple:
    """Sort key within a column. The id only breaks ties in corrupt data."""
    return (task.order, task.id)


def empty_view() -> ColumnView:
    return {status: [] for status in TaskStatus}


def project(tasks: Iterable[Task], project_id: str) -> ColumnView:
    """Group a project's tasks by status, each column ascending by order."""
    view = empty_view()
    for task in tasks:
        if task.project_id == project_id:
            view[task.status].append(task)
    for column in view.values():
        column.sort(key=order_key)
    return view


def column_ids(view: ColumnView) -> Dict[str, List[str]]:
    """{"todo": [ids...], "in-progress": [...], "done": [...]}"""
    return {status.value: [t.id for t in column] for status, column in view.items()}


def find_position(view: ColumnView, task_id: str) -> Optional[Tuple[TaskStatus, int]]:
    """Return (status, index) of a task in the view, or None."""
    for status, column in view.items():
        for index, task in enumerate(column):
            if task.id == task_id:
                return status, index
    return None
