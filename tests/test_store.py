"""
Tests for the in-memory board store.
"""
import textwrap
import threading
from decimal import Decimal

import pytest

from pkg.taskboard.projector import column_ids
from pkg.taskboard.resolver import MoveResolver
from pkg.taskboard.schema import TaskPriority, TaskStatus
from pkg.taskboard.store import BoardStore, TaskNotFound

from conftest import make_task


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Queries
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_get_tasks_scoped_to_project(store):
    assert column_ids(store.get_tasks("p1")) == {
        "todo": ["a", "b", "c"],
        "in-progress": [],
        "done": ["d"],
    }
    assert column_ids(store.get_tasks("p2"))["todo"] == ["x"]


def test_get_tasks_returns_copies(store):
    view = store.get_tasks("p1")
    view[TaskStatus.TODO][0].order = Decimal(100)
    view[TaskStatus.TODO].clear()
    assert column_ids(store.get_tasks("p1"))["todo"] == ["a", "b", "c"]


def test_get_and_require(store):
    assert store.get("a").title == "Task a"
    assert store.get("missing") is None
    with pytest.raises(TaskNotFound) as exc:
        store.require("missing")
    assert exc.value.task_id == "missing"
    assert str(exc.value) == "Task missing not found"


def test_list_projects(store):
    assert store.list_projects() == {"p1": 4, "p2": 1}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Moves
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_apply_move_changes_status_and_order(store):
    task = store.apply_move("a", TaskStatus.IN_PROGRESS, Decimal(1))
    assert task.status == TaskStatus.IN_PROGRESS
    assert column_ids(store.get_tasks("p1"))["in-progress"] == ["a"]
    assert "a" not in column_ids(store.get_tasks("p1"))["todo"]


def test_apply_move_accepts_plain_values(store):
    task = store.apply_move("a", "done", "0.5")
    assert task.status == TaskStatus.DONE
    assert task.order == Decimal("0.5")
    assert column_ids(store.get_tasks("p1"))["done"] == ["a", "d"]


@pytest.mark.parametrize("order", [Decimal("NaN"), Decimal("Infinity"), Decimal("-Infinity")])
def test_apply_move_rejects_non_finite_decimal(store, order):
    before = column_ids(store.get_tasks("p1"))
    with pytest.raises(ValueError):
        store.apply_move("a", TaskStatus.TODO, order)
    assert column_ids(store.get_tasks("p1")) == before
    assert store.get("a").order == Decimal(1)


def test_apply_move_unknown_task_changes_nothing(store):
    before = {p: column_ids(store.get_tasks(p)) for p in ("p1", "p2")}
    with pytest.raises(TaskNotFound):
        store.apply_move("ghost", TaskStatus.DONE, Decimal(1))
    assert {p: column_ids(store.get_tasks(p)) for p in ("p1", "p2")} == before


def test_apply_move_with_missing_sibling_is_atomic(store):
    with pytest.raises(TaskNotFound):
        store.apply_move("a", TaskStatus.DONE, Decimal(5), {"b": Decimal(1), "ghost": Decimal(2)})
    assert store.get("a").status == TaskStatus.TODO
    assert store.get("b").order == Decimal(2)


def test_apply_move_writes_rebalanced_siblings(store):
    store.apply_move("a", TaskStatus.TODO, Decimal("1.5"), {"b": Decimal(1), "c": Decimal(2)})
    assert column_ids(store.get_tasks("p1"))["todo"] == ["b", "a", "c"]


def test_last_write_wins(store):
    store.apply_move("a", TaskStatus.DONE, Decimal(10))
    store.apply_move("a", TaskStatus.IN_PROGRESS, Decimal(3))
    task = store.get("a")
    assert (task.status, task.order) == (TaskStatus.IN_PROGRESS, Decimal(3))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Lifecycle
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_add_task_appends_to_todo(store):
    task = store.add_task("p1", "New task", priority=TaskPriority.HIGH, tags=["ops"])
    assert task.id == "task-001"
    assert task.status == TaskStatus.TODO
    assert task.order > Decimal(3)
    assert column_ids(store.get_tasks("p1"))["todo"][-1] == task.id


def test_add_task_to_empty_project():
    store = BoardStore()
    task = store.add_task("fresh", "First")
    assert task.order == Decimal(1)
    assert store.add_task("fresh", "Second").order == Decimal(2)


def test_add_task_rejects_engine_fields(store):
    with pytest.raises(ValueError):
        store.add_task("p1", "Sneaky", status=TaskStatus.DONE)


def test_next_task_id_follows_highest():
    store = BoardStore([make_task("task-007", 1), make_task("legacy", 2)])
    assert store.next_task_id() == "task-008"


def test_update_fields(store):
    task = store.update_fields("a", title="Renamed", tags=["x"])
    assert task.title == "Renamed"
    assert store.get("a").tags == ["x"]
    assert store.get("a").order == Decimal(1)


@pytest.mark.parametrize("field", ["status", "order", "id", "project_id"])
def test_update_fields_rejects_engine_fields(store, field):
    with pytest.raises(ValueError):
        store.update_fields("a", **{field: "done"})


def test_update_fields_unknown(store):
    with pytest.raises(TaskNotFound):
        store.update_fields("ghost", title="x")
    with pytest.raises(ValueError):
        store.update_fields("a", colour="red")


@pytest.mark.parametrize("name", ["touch", "to_dict", "from_dict"])
def test_update_fields_rejects_method_names(store, name):
    with pytest.raises(ValueError, match="Unknown task field"):
        store.update_fields("a", **{name: 1})
    assert store.get("a").title == "Task a"


def test_delete_leaves_other_keys(store):
    assert store.delete("b")
    assert not store.delete("b")
    todo = store.get_tasks("p1")[TaskStatus.TODO]
    assert [(t.id, t.order) for t in todo] == [("a", Decimal(1)), ("c", Decimal(3))]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Stats
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_get_stats():
    store = BoardStore([
        make_task("a", 1, priority="urgent"),
        make_task("b", 1, status=TaskStatus.DONE, priority="urgent"),
        make_task("c", 2, status=TaskStatus.DONE),
        make_task("d", 1, status=TaskStatus.IN_PROGRESS, project_id="p2"),
    ])

    stats = store.get_stats("p1")
    assert stats["total"] == 3
    assert stats["by_status"] == {"todo": 1, "in-progress": 0, "done": 2}
    assert stats["by_priority"]["urgent"] == 2
    assert stats["urgent"] == 1  # done tasks are not counted
    assert stats["completion"] == 67

    assert store.get_stats()["by_project"] == {"p1": 3, "p2": 1}


def test_get_stats_empty():
    stats = BoardStore().get_stats()
    assert stats["total"] == 0
    assert stats["completion"] == 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Seed data
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_from_yaml(tmp_path):
    seed = tmp_path / "seed.yaml"
    seed.write_text(textwrap.dedent("""\
        tasks:
          - {id: t1, project_id: web, title: One, status: todo, order: 2}
          - {id: t2, project_id: web, title: Two, status: todo, order: 1}
          - {id: t3, project_id: web, title: Three, status: in_progress, order: 1,
             due_date: 2024-03-01, tags: [ui]}
    """))

    store = BoardStore.from_yaml(str(seed))
    view = column_ids(store.get_tasks("web"))
    assert view["todo"] == ["t2", "t1"]
    assert view["in-progress"] == ["t3"]
    assert store.get("t3").due_date.year == 2024


def test_from_yaml_heals_duplicate_keys(tmp_path):
    seed = tmp_path / "seed.yaml"
    seed.write_text(textwrap.dedent("""\
        tasks:
          - {id: t1, project_id: web, order: 1}
          - {id: t2, project_id: web, order: 1}
          - {id: t3, project_id: web, order: 0}
    """))

    store = BoardStore.from_yaml(str(seed), resolver=MoveResolver(baseline=10, step=10))
    todo = store.get_tasks("web")[TaskStatus.TODO]
    assert [(t.id, t.order) for t in todo] == [
        ("t3", Decimal(10)), ("t1", Decimal(20)), ("t2", Decimal(30)),
    ]


def test_bundled_seed_loads():
    from pathlib import Path
    seed = Path(__file__).parent.parent / "data" / "seed.yaml"
    store = BoardStore.from_yaml(str(seed))
    assert "website-redesign" in store.list_projects()
    for project_id in store.list_projects():
        for column in store.get_tasks(project_id).values():
            orders = [t.order for t in column]
            assert len(set(orders)) == len(orders)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Locking
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_project_lock_is_reentrant(store):
    with store.project_lock("p1"):
        with store.project_lock("p1"):
            store.add_task("p1", "Nested")
    assert len(store.get_tasks("p1")[TaskStatus.TODO]) == 4


def test_project_lock_blocks_other_threads(store):
    entered = threading.Event()
    order = []

    def contender():
        with store.project_lock("p1"):
            order.append("contender")
        entered.set()

    with store.project_lock("p1"):
        t = threading.Thread(target=contender)
        t.start()
        assert not entered.wait(0.1)
        order.append("holder")
    t.join(timeout=2)
    assert order == ["holder", "contender"]
