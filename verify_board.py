#!/usr/bin/env python3
"""
Quick verification that the board engine works end-to-end.
"""
from pkg.taskboard.events import BoardEventBridge
from pkg.taskboard.projector import column_ids
from pkg.taskboard.resolver import MoveResolver
from pkg.taskboard.schema import DropEvent, TaskStatus
from pkg.taskboard.store import BoardStore, TaskNotFound


def main():
    print("=" * 60)
    print("Task Board Engine Verification")
    print("=" * 60)

    print("\n[1/5] Creating store with a low-precision resolver...")
    store = BoardStore(resolver=MoveResolver(precision=6))
    bridge = BoardEventBridge(store)
    bridge.subscribe("task_moved", lambda message, **_: print(f"   → {message}"))
    bridge.subscribe(
        "column_rebalanced",
        lambda status, count, **_: print(f"   → rebalanced {status.value} ({count} tasks)"),
    )
    print("✅ Store created")

    print("\n[2/5] Creating tasks...")
    a = bridge.create_task("demo", "Write release notes")
    b = bridge.create_task("demo", "Tag release")
    c = bridge.create_task("demo", "Announce release")
    print(f"✅ To Do: {column_ids(store.get_tasks('demo'))['todo']}")

    print("\n[3/5] Moving tasks between columns...")
    bridge.on_drop(DropEvent(a.id, TaskStatus.IN_PROGRESS, 0))
    bridge.on_drop(DropEvent(c.id, TaskStatus.TODO, 0))
    bridge.on_drop(DropEvent(b.id, TaskStatus.DONE, 99))
    print(f"✅ Columns: {column_ids(store.get_tasks('demo'))}")

    print("\n[4/5] Forcing a rebalance with repeated midpoint inserts...")
    for i in range(20):
        t = bridge.create_task("demo", f"Filler {i}")
        bridge.on_drop(DropEvent(t.id, TaskStatus.IN_PROGRESS, 1))
    orders = [t.order for t in store.get_tasks("demo")[TaskStatus.IN_PROGRESS]]
    assert orders == sorted(set(orders)), "order keys must stay distinct"
    print(f"✅ {len(orders)} distinct keys in In Progress")

    print("\n[5/5] Dropping an unknown task...")
    try:
        bridge.on_drop(DropEvent("task-999", TaskStatus.DONE, 0))
        print("❌ Expected TaskNotFound")
        return
    except TaskNotFound as e:
        print(f"✅ {e}")

    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)


if __name__ == "__main__":
    main()
