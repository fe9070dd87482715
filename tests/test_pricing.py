from decimal import Decimal

import pytest

from pallet_orders.domain import pricing
from pallet_orders.domain.pricing import LineItem, PricingPolicy

D = Decimal


def test_subtotal():
    items = [LineItem(10, D("8.50")), LineItem(5, D("20"), is_custom=True)]
    assert pricing.subtotal(items) == D("185")


def test_empty_subtotal_is_zero():
    assert pricing.subtotal([]) == D("0")


def test_floats_are_taken_at_face_value():
    assert pricing.subtotal([LineItem(10, 8.5)]) == D("85.0")
    assert pricing.subtotal([LineItem(3, 0.1)]) == D("0.3")


@pytest.mark.parametrize(
    "amount,fee",
    [(D("0"), D("50")), (D("499.99"), D("50")), (D("500"), D("0")), (D("1200"), D("0"))],
)
def test_delivery_fee_threshold(amount, fee):
    assert pricing.delivery_fee(amount) == fee


def test_custom_policy():
    policy = PricingPolicy(free_threshold=D("100"), flat_fee=D("15"))
    assert pricing.delivery_fee(D("99"), policy) == D("15")
    assert pricing.total([LineItem(1, D("99"))], None, policy) == D("114")


def test_total_uses_policy_fee_when_price_unset():
    assert pricing.total([LineItem(10, D("8.50"))]) == D("135")


def test_total_uses_admin_delivery_price():
    assert pricing.total([LineItem(10, D("8.50"))], D("0")) == D("85")
    assert pricing.total([LineItem(10, D("8.50"))], D("12.25")) == D("97.25")


def test_order_total_counts_unset_delivery_as_zero():
    items = [LineItem(10, D("8.50")), LineItem(5, D("0"), is_custom=True)]
    assert pricing.order_total(items, None) == D("85")
    assert pricing.order_total(items, D("40")) == D("125")


def test_custom_item_quote_scenario():
    items = [LineItem(10, D("8.50")), LineItem(5, D("0"), is_custom=True)]
    assert pricing.order_total(items, None) == D("85")

    items[1] = LineItem(5, D("20"), is_custom=True)
    assert pricing.subtotal(items) == D("185")
    assert pricing.order_total(items, D("0")) == D("185")


def test_recomputation_is_idempotent():
    items = [LineItem(7, D("3.33")), LineItem(2, D("19.99"))]
    first = pricing.order_total(items, D("50"))
    assert pricing.order_total(items, D("50")) == first == D("113.29")


def test_total_is_idempotent():
    items = [LineItem(7, D("3.33")), LineItem(2, D("19.99"))]
    assert pricing.total(items, D("50")) == pricing.total(items, D("50")) == D("113.29")
    assert pricing.total(items, None) == pricing.total(items, None) == D("113.29")
    assert items == [LineItem(7, D("3.33")), LineItem(2, D("19.99"))]


def test_money():
    assert pricing.money(D("185")) == "185.00"
    assert pricing.money(D("0.125")) == "0.13"
    assert pricing.money(None) is None
