# pallet_orders/services/order_service.py
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pallet_orders.data.models.order import OrderModel
from pallet_orders.data.models.order_item import OrderItemModel
from pallet_orders.domain import pricing
from pallet_orders.domain.errors import (
    ConflictError,
    NotFoundError,
    AuthorizationError,
    PreconditionError,
    UpstreamError,
    ValidationError,
)
from pallet_orders.domain.order_state import (
    OrderStatus,
    is_terminal,
    pricing_gaps,
    validate_transition,
)
from pallet_orders.repos.order_repo import OrderRepo
from pallet_orders.services.notification_service import (
    ADMIN_NEW_ORDER,
    CUSTOM_PRICE_SET,
    ORDER_CONFIRMATION,
    ORDER_STATUS_UPDATE,
    NotificationService,
)
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)


def parse_amount(value: Any, label: str = "price") -> Decimal:
    """Non-negative finite amount, or ValidationError. Strings and bools are not amounts."""
    if value is None or isinstance(value, (bool, str)):
        raise ValidationError(f"Invalid {label}")
    try:
        amount = pricing.to_amount(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {label}") from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Invalid {label}")
    return amount


class OrderService:
    """
    Order fulfillment use cases.

    Commands (create, update_status, set_delivery_price, update_item_price,
    delete) mutate an order; queries (get, list, estimate) only read.
    Every mutation bumps Order.version; callers may pass the version they
    read as expected_version to refuse stale writes.
    """

    def __init__(
        self,
        db: Session,
        notifier: NotificationService | None = None,
        policy: pricing.PricingPolicy = pricing.DEFAULT_POLICY,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.notifier = notifier or NotificationService()
        self.policy = policy

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: str, user_id: str | None = None) -> Dict[str, Any]:
        """
        Use Case: read one order with its pricing breakdown.
        user_id=None means the caller is an admin.
        """
        order = self._load(order_id)
        if user_id is not None and order.customer_id != user_id:
            raise AuthorizationError("No access to this order")
        return self._serialize(order)

    def list_orders(self, customer_id: str | None = None, status: str | None = None) -> List[Dict[str, Any]]:
        if status is not None:
            status = self._parse_status(status).value
        return [self._serialize(o) for o in self.repo.list_orders(customer_id=customer_id, status=status)]

    def estimate(self, items: Iterable[Any]) -> Dict[str, Any]:
        """Cart preview: policy delivery fee applied, nothing persisted."""
        lines = [
            pricing.LineItem(
                quantity=self._parse_quantity(i.quantity),
                unit_price=parse_amount(i.unit_price),
                is_custom=bool(getattr(i, "is_custom", False)),
            )
            for i in items
        ]
        if not lines:
            raise ValidationError("No items provided")
        sub = pricing.subtotal(lines)
        return {
            "subtotal": sub,
            "delivery_fee": pricing.delivery_fee(sub, self.policy),
            "total": pricing.total(lines, None, self.policy),
            "has_custom_items": any(line.is_custom for line in lines),
        }

    # =====================================================
    # COMMANDS
    # =====================================================
    def create_order(
        self,
        customer_id: str,
        items: Iterable[Any],
        delivery_notes: str = "",
        customer_email: str | None = None,
        customer_name: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: place an order from the cart snapshot.

        1. Validates every line (catalog items need a price, custom ones may wait)
        2. Computes the total (no delivery price yet)
        3. Stores order + items in one transaction
        4. Sends confirmation / admin notice (detached)
        """
        models = [self._build_item(i) for i in items]
        if not models:
            raise ValidationError("No items provided")

        order = OrderModel(
            customer_id=customer_id,
            customer_email=customer_email,
            customer_name=customer_name,
            status=OrderStatus.PENDING.value,
            delivery_notes=delivery_notes or "",
            total=pricing.order_total(models, None),
            version=1,
        )

        try:
            created = self.repo.create_order(order, models)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Order creation for customer {customer_id} failed: {e}")
            raise UpstreamError("Could not store order") from e

        logger.info(f"Order {created.id} created for customer {customer_id} ({len(models)} items)")

        breakdown = self._breakdown(created)
        self.notifier.dispatch(ORDER_CONFIRMATION, breakdown)
        self.notifier.dispatch(ADMIN_NEW_ORDER, breakdown)

        return self._serialize(created)

    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus | str,
        delivery_date: date | None = None,
        expected_version: int | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: admin moves an order through fulfillment.

        Leaving pending (other than to cancelled) needs a delivery price, an
        effective delivery date (stored or given here) and every custom item
        priced. Re-applying the current status is re-validated and
        re-notified, which is how a delivery date gets rescheduled.
        """
        target = self._parse_status(new_status)
        order = self._load(order_id)
        self._check_version(order, expected_version)

        previous = OrderStatus(order.status)
        validate_transition(
            previous,
            target,
            items=order.items,
            delivery_price=order.delivery_price,
            delivery_date=delivery_date or order.delivery_date,
        )

        new_data: Dict[str, Any] = {
            "status": target.value,
            "total": pricing.order_total(order.items, order.delivery_price),
        }
        if delivery_date is not None:
            new_data["delivery_date"] = delivery_date

        self._commit_versioned(order, new_data)
        logger.info(f"Order {order_id}: {previous.value} -> {target.value}")

        breakdown = self._breakdown(order)
        breakdown["previous_status"] = previous.value
        self.notifier.dispatch(ORDER_STATUS_UPDATE, breakdown)

        return self._serialize(order)

    def set_delivery_price(
        self,
        order_id: str,
        delivery_price: Any,
        expected_version: int | None = None,
    ) -> Dict[str, Any]:
        """Use Case: admin prices delivery; total becomes subtotal + delivery price."""
        price = parse_amount(delivery_price, "delivery price")
        order = self._load(order_id)
        self._ensure_open(order)
        self._check_version(order, expected_version)

        self._commit_versioned(order, {
            "delivery_price": price,
            "total": pricing.order_total(order.items, price),
        })
        logger.info(f"Order {order_id}: delivery price set to {pricing.money(price)}")
        return self._serialize(order)

    def update_item_price(
        self,
        item_id: str,
        new_unit_price: Any,
        expected_version: int | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: admin corrects a line price (usually a quoted custom item).

        1. Updates the item price
        2. Recomputes subtotal over all sibling items and the order total
           with the stored delivery price (unset counts as 0)
        3. Notifies the customer with old -> new price and the full breakdown
        """
        price = parse_amount(new_unit_price)

        item = self.repo.get_item(item_id)
        if not item:
            raise NotFoundError("Order item not found")

        order = self._load(item.order_id)
        self._ensure_open(order)
        self._check_version(order, expected_version)

        old_price = item.unit_price
        try:
            self.repo.set_item_price(item, price)
            items = self.repo.get_items(order.id)
            new_total = pricing.order_total(items, order.delivery_price)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Price update for item {item_id} failed: {e}")
            raise UpstreamError("Could not update item price") from e

        self._commit_versioned(order, {"total": new_total})
        logger.info(
            f"Order {order.id}: item {item_id} price {pricing.money(old_price)} -> {pricing.money(price)}, "
            f"total {pricing.money(order.total)}"
        )

        breakdown = self._breakdown(order)
        breakdown.update({
            "item_id": item.id,
            "item_name": item.product_name,
            "quantity": item.quantity,
            "old_unit_price": pricing.money(old_price),
            "unit_price": pricing.money(item.unit_price),
            "line_total": pricing.money(item.line_total),
        })
        self.notifier.dispatch(CUSTOM_PRICE_SET, breakdown)

        return {
            "item": self._item_dict(item),
            "order_id": order.id,
            "order_total": order.total,
            "order_version": order.version,
        }

    def delete_order(self, order_id: str) -> None:
        order = self._load(order_id)
        try:
            self.repo.delete_order(order)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Deleting order {order_id} failed: {e}")
            raise UpstreamError("Could not delete order") from e
        logger.info(f"Order {order_id} deleted")

    # =====================================================
    # helpers
    # =====================================================
    def _load(self, order_id: str) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    def _parse_status(value: OrderStatus | str) -> OrderStatus:
        try:
            return OrderStatus(value)
        except ValueError:
            raise ValidationError(f"Unknown order status: {value}") from None

    @staticmethod
    def _parse_quantity(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError("Quantity must be a positive integer")
        return value

    def _build_item(self, line: Any) -> OrderItemModel:
        quantity = self._parse_quantity(line.quantity)
        unit_price = parse_amount(line.unit_price)
        is_custom = bool(line.is_custom)
        custom_specs = getattr(line, "custom_specs", None)

        if not is_custom and unit_price <= 0:
            raise ValidationError(f"Item {line.product_id} has no catalog price")
        if custom_specs and not is_custom:
            raise ValidationError(f"Item {line.product_id} is not custom but has custom specs")

        return OrderItemModel(
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=quantity,
            unit_price=unit_price,
            is_custom=is_custom,
            custom_specs=custom_specs if is_custom else None,
        )

    @staticmethod
    def _ensure_open(order: OrderModel) -> None:
        if is_terminal(order.status):
            raise PreconditionError(f"Order is {order.status} and its pricing can no longer change")

    @staticmethod
    def _check_version(order: OrderModel, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != order.version:
            raise ConflictError(
                f"Order {order.id} was modified by someone else",
                current_version=order.version,
                expected_version=expected_version,
            )

    def _commit_versioned(self, order: OrderModel, new_data: Dict[str, Any]) -> None:
        read_version = order.version
        try:
            rowcount = self.repo.update_order_version(
                order_id=order.id,
                old_version=read_version,
                new_data={**new_data, "version": read_version + 1},
            )
            # update ... where version = read_version, 0 rows means a concurrent write won
            if rowcount == 0:
                self.repo.rollback()
                raise ConflictError(f"Order {order.id} was modified by someone else")
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Persisting order {order.id} failed: {e}")
            raise UpstreamError("Could not update order") from e
        self.repo.refresh(order)

    def _item_dict(self, item: OrderItemModel) -> Dict[str, Any]:
        return {
            "id": item.id,
            "product_id": item.product_id,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "is_custom": item.is_custom,
            "custom_specs": item.custom_specs,
            "line_total": item.line_total,
        }

    def _serialize(self, order: OrderModel) -> Dict[str, Any]:
        items = list(order.items)
        missing, unpriced = pricing_gaps(items, order.delivery_price, order.delivery_date)
        return {
            "id": order.id,
            "customer_id": order.customer_id,
            "customer_email": order.customer_email,
            "customer_name": order.customer_name,
            "status": order.status,
            "delivery_price": order.delivery_price,
            "delivery_date": order.delivery_date,
            "delivery_notes": order.delivery_notes or "",
            "subtotal": pricing.subtotal(items),
            "total": order.total,
            "version": order.version,
            "pricing_complete": not missing,
            "missing": missing,
            "unpriced_item_ids": unpriced,
            "items": [self._item_dict(i) for i in items],
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }

    def _breakdown(self, order: OrderModel) -> Dict[str, Any]:
        """JSON-safe pricing breakdown for notification payloads."""
        items = list(order.items)
        return {
            "order_id": order.id,
            "customer_email": order.customer_email,
            "customer_name": order.customer_name,
            "status": order.status,
            "items": [
                {
                    "name": i.product_name,
                    "quantity": i.quantity,
                    "unit_price": pricing.money(i.unit_price),
                    "line_total": pricing.money(i.line_total),
                    "is_custom": bool(i.is_custom),
                }
                for i in items
            ],
            "has_custom_items": any(i.is_custom for i in items),
            "subtotal": pricing.money(pricing.subtotal(items)),
            "delivery_price": pricing.money(order.delivery_price),
            "delivery_date": order.delivery_date.isoformat() if order.delivery_date else None,
            "total": pricing.money(order.total),
        }
