# pallet_orders/domain/pricing.py
"""
Pricing engine: pure functions over line items.

Anything with `quantity` and `unit_price` attributes counts as a line item
(ORM rows, LineItem, schema objects). Amounts are Decimals and are never
rounded here; `money()` is for presentation boundaries only.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from pallet_orders.utils.settings import DELIVERY_FLAT_FEE, FREE_DELIVERY_THRESHOLD

ZERO = Decimal("0")
CENT = Decimal("0.01")


class PricedLine(Protocol):
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class LineItem:
    quantity: int
    unit_price: Decimal
    is_custom: bool = False


@dataclass(frozen=True)
class PricingPolicy:
    """Free-delivery threshold and flat fee, passed wherever delivery is priced."""

    free_threshold: Decimal = FREE_DELIVERY_THRESHOLD
    flat_fee: Decimal = DELIVERY_FLAT_FEE


DEFAULT_POLICY = PricingPolicy()


def to_amount(value) -> Decimal:
    #floats go through str so 8.5 stays 8.5 and not 8.4999...
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def subtotal(items: Iterable[PricedLine]) -> Decimal:
    return sum((to_amount(i.unit_price) * i.quantity for i in items), ZERO)


def delivery_fee(amount: Decimal, policy: PricingPolicy = DEFAULT_POLICY) -> Decimal:
    if to_amount(amount) >= policy.free_threshold:
        return ZERO
    return policy.flat_fee


def total(
    items: Iterable[PricedLine],
    delivery_price: Decimal | None = None,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Decimal:
    """Subtotal plus the admin delivery price, or the policy fee when none is set."""
    items = list(items)
    sub = subtotal(items)
    if delivery_price is None:
        return sub + delivery_fee(sub, policy)
    return sub + to_amount(delivery_price)


def order_total(items: Iterable[PricedLine], delivery_price: Decimal | None) -> Decimal:
    """Stored order total: an unset delivery price contributes nothing."""
    sub = subtotal(items)
    if delivery_price is None:
        return sub
    return sub + to_amount(delivery_price)


def money(amount: Decimal | None) -> str | None:
    if amount is None:
        return None
    return str(to_amount(amount).quantize(CENT, rounding=ROUND_HALF_UP))
