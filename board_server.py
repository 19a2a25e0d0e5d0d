#!/usr/bin/env python3
"""
Task Board Server
-----------------
JSON API over the in-memory board engine. The kanban UI calls it after
each drag gesture with a single drop event.

Usage:
    python board_server.py
    python board_server.py --seed data/seed.yaml --port 3000

API:
    GET    /api/projects                  → { projects: {id: count} }
    GET    /api/projects/<pid>/board      → { project_id, columns, stats }
    POST   /api/projects/<pid>/tasks      → JSON body: { title, ... }
    GET    /api/projects/<pid>/stats      → board statistics
    PUT    /api/tasks/<id>                → JSON body: payload fields
    POST   /api/tasks/<id>/move           → JSON body: { status, index }
    DELETE /api/tasks/<id>
"""

import logging
from datetime import datetime
from typing import Optional

from flask import Flask, jsonify, request

from pkg.taskboard.config import BoardConfig, setup_logging
from pkg.taskboard.events import BoardEventBridge
from pkg.taskboard.resolver import MoveResolver
from pkg.taskboard.schema import DropEvent, TaskPriority
from pkg.taskboard.store import BoardStore, TaskNotFound

app = Flask(__name__)
logger = logging.getLogger("board_server")

EDITABLE_FIELDS = ("title", "description", "priority", "assignees", "tags", "due_date")

_bridge: Optional[BoardEventBridge] = None


# ── Setup ────────────────────────────────────────────────────────────────────

def configure(cfg: Optional[BoardConfig] = None, store: Optional[BoardStore] = None) -> BoardEventBridge:
    """Build the store and bridge the routes use. Tests pass their own store."""
    global _bridge
    cfg = cfg or BoardConfig.load()
    if store is None:
        resolver = MoveResolver.from_config(cfg)
        if cfg.seed_path:
            store = BoardStore.from_yaml(cfg.seed_path, resolver=resolver)
        else:
            store = BoardStore(resolver=resolver)
    _bridge = BoardEventBridge(store)
    _bridge.subscribe("task_moved", lambda message, **_: logger.info(message))
    return _bridge


def get_bridge() -> BoardEventBridge:
    if _bridge is None:
        return configure()
    return _bridge


def _json_body() -> Optional[dict]:
    """Request body as a dict; None when it is JSON but not an object."""
    data = request.get_json(force=True, silent=True) or {}
    return data if isinstance(data, dict) else None


def _payload_fields(data: dict) -> dict:
    """Pick and coerce editable payload fields from a request body."""
    fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if "priority" in fields:
        fields["priority"] = TaskPriority.from_str(fields["priority"])
    if fields.get("due_date"):
        fields["due_date"] = datetime.fromisoformat(str(fields["due_date"]))
    for key in ("assignees", "tags"):
        if key in fields and not isinstance(fields[key], list):
            raise ValueError(f"{key} must be a list")
    return fields


# ── Routes ───────────────────────────────────────────────────────────────────

@app.route("/api/projects")
def api_projects():
    return jsonify({"projects": get_bridge().store.list_projects()})


@app.route("/api/projects/<project_id>/board")
def api_board(project_id):
    store = get_bridge().store
    view = store.get_tasks(project_id)
    return jsonify({
        "project_id": project_id,
        "columns": {
            status.value: [t.to_dict() for t in column]
            for status, column in view.items()
        },
        "stats": store.get_stats(project_id),
    })


@app.route("/api/projects/<project_id>/stats")
def api_stats(project_id):
    return jsonify(get_bridge().store.get_stats(project_id))


@app.route("/api/projects/<project_id>/tasks", methods=["POST"])
def api_create_task(project_id):
    data = _json_body()
    if data is None:
        return jsonify({"error": "request body must be a JSON object"}), 400
    title = str(data.get("title", "")).strip()
    if not title:
        return jsonify({"error": "title is required"}), 400
    try:
        fields = _payload_fields(data)
        fields.pop("title", None)
        task = get_bridge().create_task(project_id, title, **fields)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"task": task.to_dict()}), 201


@app.route("/api/tasks/<task_id>", methods=["PUT"])
def api_update_task(task_id):
    data = _json_body()
    if data is None:
        return jsonify({"error": "request body must be a JSON object"}), 400
    try:
        fields = _payload_fields(data)
        task = get_bridge().store.update_fields(task_id, **fields)
    except TaskNotFound:
        return jsonify({"error": "Task not found"}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"task": task.to_dict()})


@app.route("/api/tasks/<task_id>/move", methods=["POST"])
def api_move_task(task_id):
    """Apply one drop event: { status, index }. index omitted = append."""
    data = _json_body()
    if data is None:
        return jsonify({"error": "request body must be a JSON object"}), 400
    bridge = get_bridge()
    try:
        drop = DropEvent.from_dict({**data, "task_id": task_id})
        task = bridge.on_drop(drop)
    except TaskNotFound:
        return jsonify({"error": "Task not found"}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"task": task.to_dict(), "index": bridge.position_of(task)})


@app.route("/api/tasks/<task_id>", methods=["DELETE"])
def api_delete_task(task_id):
    if not get_bridge().delete_task(task_id):
        return jsonify({"error": "Task not found"}), 404
    return jsonify({"deleted": True})


@app.route("/health")
def health():
    return jsonify({"status": "ok", "tasks": get_bridge().store.get_stats()["total"]})


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Task Board Server")
    parser.add_argument("--config", help="Path to taskboard.yaml (overrides TASKBOARD_CONFIG)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--seed", help="YAML dataset to load at startup")
    args = parser.parse_args()

    cfg = BoardConfig.load(args.config)
    if args.seed:
        cfg.seed_path = args.seed
    host = args.host or cfg.host
    port = args.port or cfg.port

    setup_logging(cfg.log_level, name="board_server")
    bridge = configure(cfg)

    logger.info(
        f"Serving {bridge.store.get_stats()['total']} tasks on http://{host}:{port}"
    )
    app.run(host=host, port=port, debug=False, threaded=True)
