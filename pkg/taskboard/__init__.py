# Task board engine: column model, move resolution, and ordered projections
#
# Components:
#   schema.py    - Data model (Task, TaskStatus, TaskPriority, DropEvent)
#   projector.py - Per-status column views derived from a flat task list
#   resolver.py  - Drop event -> (status, order) with fractional ranks and rebalance
#   store.py     - In-memory board state with per-project critical sections
#   events.py    - Drop routing and move notifications
#   config.py    - YAML configuration and logging setup
