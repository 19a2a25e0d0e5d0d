"""
Move resolution: drop event → (status, order).

Order keys are fractional ranks. A task dropped between two neighbours
gets the midpoint of their keys, so no sibling is ever renumbered, until
the keys get too close to split at the configured decimal precision. At
that point the destination column is rebalanced to evenly spaced keys
(baseline, baseline + step, ...) and the drop is placed again.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Dict, Iterable, List, Optional

from .projector import order_key
from .schema import DropEvent, Task, TaskStatus, to_order

logger = logging.getLogger(__name__)

DEFAULT_ORDER_PRECISION = 28  # significant digits, same as decimal's default context
MIN_ORDER_PRECISION = 6
DEFAULT_ORDER_BASELINE = Decimal(1)
DEFAULT_ORDER_STEP = Decimal(1)


class RebalanceRequired(Exception):
    """Adjacent order keys can no longer be split. Handled inside the resolver."""

    def __init__(self, lower: Optional[Decimal], upper: Optional[Decimal]):
        super().__init__(f"no distinct order key between {lower} and {upper}")
        self.lower = lower
        self.upper = upper


@dataclass
class MoveResult:
    """Outcome of resolving one drop. `rebalanced` maps sibling ids to new keys."""
    task_id: str
    status: TaskStatus
    order: Decimal
    index: int
    rebalanced: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def did_rebalance(self) -> bool:
        return bool(self.rebalanced)


def clamp_index(index: Optional[int], length: int) -> int:
    """Clamp a drop index into [0, length]. None appends."""
    if index is None:
        return length
    return max(0, min(index, length))


def rebalance_orders(
    tasks: Iterable[Task],
    baseline: Decimal = DEFAULT_ORDER_BASELINE,
    step: Decimal = DEFAULT_ORDER_STEP,
) -> Dict[str, Decimal]:
    """Evenly spaced keys for a column, preserving its current relative order.

    sorted() is stable, so tasks with equal keys keep their input order.
    """
    ordered = sorted(tasks, key=lambda t: t.order)
    return {task.id: baseline + step * i for i, task in enumerate(ordered)}


class MoveResolver:
    """Turns drop events into concrete (status, order) assignments."""

    def __init__(
        self,
        precision: int = DEFAULT_ORDER_PRECISION,
        baseline=DEFAULT_ORDER_BASELINE,
        step=DEFAULT_ORDER_STEP,
    ):
        if precision < MIN_ORDER_PRECISION:
            raise ValueError(
                f"order precision must be at least {MIN_ORDER_PRECISION}, got {precision}"
            )
        self.precision = precision
        self.baseline = to_order(baseline)
        self.step = to_order(step)
        if self.step <= 0:
            raise ValueError(f"order step must be positive, got {step}")

    @classmethod
    def from_config(cls, cfg) -> "MoveResolver":
        return cls(
            precision=cfg.order_precision,
            baseline=cfg.order_baseline,
            step=cfg.order_step,
        )

    def resolve(self, column_tasks: Iterable[Task], drop: DropEvent) -> MoveResult:
        """
        Compute where `drop` lands in the destination column.

        Args:
            column_tasks: current tasks of the destination column (any order;
                the moved task itself is ignored if present)
            drop: the drop event

        Returns:
            MoveResult with the target status, the new order key, the clamped
            index, and any sibling keys rewritten by a rebalance.
        """
        others = sorted(
            (t for t in column_tasks if t.id != drop.task_id), key=order_key
        )
        index = clamp_index(drop.target_index, len(others))
        orders = [t.order for t in others]

        rebalanced: Dict[str, Decimal] = {}
        try:
            order = self._place(orders, index, self.precision)
        except RebalanceRequired as exc:
            rebalanced = rebalance_orders(others, self.baseline, self.step)
            logger.info(
                "Rebalancing %s column (%d tasks) for %s: %s",
                drop.target_status.value, len(others), drop.task_id, exc,
            )
            orders = [rebalanced[t.id] for t in others]
            order = self._place(orders, index, self._rebalanced_precision(orders))

        return MoveResult(
            task_id=drop.task_id,
            status=drop.target_status,
            order=order,
            index=index,
            rebalanced=rebalanced,
        )

    def append_order(self, column_tasks: Iterable[Task]) -> Decimal:
        """Key for a new task at the end of a column."""
        orders = sorted(t.order for t in column_tasks)
        try:
            return self._place(orders, len(orders), self.precision)
        except RebalanceRequired:
            # Only reachable when the last key has outgrown the precision
            return self._place(orders, len(orders), self._rebalanced_precision(orders))

    # ── internals ───────────────────────────────────────────────────────

    def _place(self, orders: List[Decimal], index: int, precision: int) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = precision
            if not orders:
                return +self.baseline
            if index == 0:
                return _checked(orders[0] - self.step, None, orders[0])
            if index >= len(orders):
                return _checked(orders[-1] + self.step, orders[-1], None)
            lower, upper = orders[index - 1], orders[index]
            return _checked((lower + upper) / 2, lower, upper)

    def _rebalanced_precision(self, orders: List[Decimal]) -> int:
        # Enough digits to hold the largest key plus one split below the step
        widest = max((len(o.as_tuple().digits) for o in orders), default=1)
        step_digits = len(self.step.as_tuple().digits)
        return max(self.precision, widest + step_digits + 2)


def _checked(candidate: Decimal, lower: Optional[Decimal], upper: Optional[Decimal]) -> Decimal:
    if lower is not None and not candidate > lower:
        raise RebalanceRequired(lower, upper)
    if upper is not None and not candidate < upper:
        raise RebalanceRequired(lower, upper)
    return candidate


_default_resolver = MoveResolver()


def resolve_move(column_tasks: Iterable[Task], drop: DropEvent) -> MoveResult:
    """Resolve a drop with the default precision, baseline and step."""
    return _default_resolver.resolve(column_tasks, drop)
