"""Shared test fixtures for the task board engine."""

import sys
from pathlib import Path

import pytest

# Ensure the project root (pkg/, board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.taskboard.events import BoardEventBridge
from pkg.taskboard.resolver import MoveResolver
from pkg.taskboard.schema import Task, TaskStatus
from pkg.taskboard.store import BoardStore


def make_task(task_id, order, status=TaskStatus.TODO, project_id="p1", **payload):
    """Task factory with sensible defaults."""
    return Task(
        id=task_id,
        project_id=project_id,
        status=status,
        order=order,
        title=payload.pop("title", f"Task {task_id}"),
        **payload,
    )


@pytest.fixture
def resolver():
    return MoveResolver()


@pytest.fixture
def store():
    """Two projects: p1 has a, b, c in To Do and d in Done; p2 has x."""
    return BoardStore([
        make_task("a", 1),
        make_task("b", 2),
        make_task("c", 3),
        make_task("d", 1, status=TaskStatus.DONE),
        make_task("x", 1, project_id="p2"),
    ])


@pytest.fixture
def bridge(store):
    return BoardEventBridge(store)
