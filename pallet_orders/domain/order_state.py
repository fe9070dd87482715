# pallet_orders/domain/order_state.py
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Iterable, List, Protocol, Tuple

from pallet_orders.domain.errors import PreconditionError


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


FORWARD_SEQUENCE: Tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

INITIAL_STATE = OrderStatus.PENDING

#reason codes reported in PreconditionError.missing
MISSING_DELIVERY_PRICE = "delivery_price"
MISSING_DELIVERY_DATE = "delivery_date"
MISSING_CUSTOM_PRICES = "custom_item_prices"
ILLEGAL_TRANSITION = "transition"


class GatedItem(Protocol):
    id: str
    unit_price: Decimal
    is_custom: bool


def is_terminal(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in TERMINAL_STATES


def next_status(current: OrderStatus | str) -> OrderStatus | None:
    current = OrderStatus(current)
    if current in TERMINAL_STATES:
        return None
    idx = FORWARD_SEQUENCE.index(current)
    return FORWARD_SEQUENCE[idx + 1]


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    """Only one step forward, or to cancelled from any non-terminal state."""
    current, target = OrderStatus(current), OrderStatus(target)
    if current in TERMINAL_STATES:
        return False
    if target is OrderStatus.CANCELLED:
        return True
    return next_status(current) is target


def unpriced_custom_items(items: Iterable[GatedItem]) -> List[str]:
    return [str(i.id) for i in items if i.is_custom and i.unit_price <= 0]


def pricing_gaps(
    items: Iterable[GatedItem],
    delivery_price: Decimal | None,
    delivery_date: date | None,
) -> Tuple[List[str], List[str]]:
    """Which fulfillment preconditions are still open, and which items lack a price."""
    missing: List[str] = []
    if delivery_price is None:
        missing.append(MISSING_DELIVERY_PRICE)
    if delivery_date is None:
        missing.append(MISSING_DELIVERY_DATE)
    unpriced = unpriced_custom_items(items)
    if unpriced:
        missing.append(MISSING_CUSTOM_PRICES)
    return missing, unpriced


def validate_transition(
    current: OrderStatus | str,
    target: OrderStatus | str,
    *,
    items: Iterable[GatedItem],
    delivery_price: Decimal | None,
    delivery_date: date | None,
) -> None:
    """
    Raise PreconditionError unless current -> target is allowed right now.

    `delivery_date` is the effective date: the one supplied with this
    transition, or the stored one. Re-applying the current status of a
    non-terminal order is accepted (used to reschedule delivery).
    """
    current, target = OrderStatus(current), OrderStatus(target)

    if current in TERMINAL_STATES:
        raise PreconditionError(
            f"Order is {current.value} and can no longer change status",
            missing=[ILLEGAL_TRANSITION],
        )

    if target is not current and not can_transition(current, target):
        raise PreconditionError(
            f"Cannot move order from {current.value} to {target.value}",
            missing=[ILLEGAL_TRANSITION],
        )

    if current is OrderStatus.PENDING and target not in (OrderStatus.PENDING, OrderStatus.CANCELLED):
        missing, unpriced = pricing_gaps(items, delivery_price, delivery_date)
        if missing:
            raise PreconditionError(
                "Order pricing is not finalized: missing " + ", ".join(missing),
                missing=missing,
                unpriced_item_ids=unpriced,
            )
