"""
Order Status State Machine

Orders and order items share one four-state workflow:

    pending -> cooking -> ready -> served

Only single forward steps are allowed. The kitchen moves items from
pending to cooking and from cooking to ready; pickup staff move a whole
order from ready to served once every item is ready. An order's stored
status is derived from its items after each item transition.
"""

from typing import Iterable, Optional, Sequence

from tableside.core.exceptions import InvalidStatusTransition
from tableside.models import OrderStatus

ALLOWED_TRANSITIONS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.COOKING,
    OrderStatus.COOKING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.SERVED,
}


STATUS_SEQUENCE: tuple[OrderStatus, ...] = tuple(OrderStatus)


def earlier_statuses(status: OrderStatus) -> tuple[OrderStatus, ...]:
    """Statuses that precede `status` in the workflow."""
    return STATUS_SEQUENCE[:STATUS_SEQUENCE.index(OrderStatus(status))]


def next_status(current: OrderStatus) -> Optional[OrderStatus]:
    """Return the only status reachable from `current`, or None if terminal."""
    return ALLOWED_TRANSITIONS.get(current)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return ALLOWED_TRANSITIONS.get(current) == requested


def ensure_transition(
    subject: str,
    current: OrderStatus,
    requested: OrderStatus,
) -> None:
    """
    Raise InvalidStatusTransition unless `requested` is the next step.

    Args:
        subject: Human-readable label used in the error, e.g. "Order item #3"
        current: Status currently stored
        requested: Status the caller wants to write
    """
    if not can_transition(current, requested):
        raise InvalidStatusTransition(
            subject, OrderStatus(current).value, OrderStatus(requested).value
        )


def derive_order_status(item_statuses: Iterable[OrderStatus]) -> OrderStatus:
    """
    Compute an order's status from its items.

    All items in one status -> that status; any mix -> cooking.
    An order with no items stays pending.
    """
    statuses = set(item_statuses)
    if not statuses:
        return OrderStatus.PENDING
    if len(statuses) == 1:
        return statuses.pop()
    return OrderStatus.COOKING


def count_ready(item_statuses: Sequence[OrderStatus]) -> int:
    return sum(1 for status in item_statuses if status == OrderStatus.READY)


def is_ready_for_serving(item_statuses: Sequence[OrderStatus]) -> bool:
    """An order can be served exactly when it has items and all are ready."""
    return len(item_statuses) > 0 and count_ready(item_statuses) == len(item_statuses)
