# pallet_orders/repos/order_repo.py
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from pallet_orders.data.models.order import OrderModel
from pallet_orders.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel, items: Iterable[OrderItemModel]) -> OrderModel:
        #order and items go in one transaction, no orphan order if an item fails
        self.db.add(order)
        self.db.flush()
        for position, item in enumerate(items):
            item.order_id = order.id
            item.position = position
            self.db.add(item)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def list_orders(self, customer_id: str | None = None, status: str | None = None) -> List[OrderModel]:
        stmt = select(OrderModel).options(selectinload(OrderModel.items))
        if customer_id is not None:
            stmt = stmt.where(OrderModel.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status)
        stmt = stmt.order_by(OrderModel.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def get_item(self, item_id: str) -> OrderItemModel | None:
        return self.db.get(OrderItemModel, item_id)

    def get_items(self, order_id: str) -> List[OrderItemModel]:
        return list(
            self.db.execute(
                select(OrderItemModel)
                .where(OrderItemModel.order_id == order_id)
                .order_by(OrderItemModel.position)
            ).scalars().all()
        )

    def set_item_price(self, item: OrderItemModel, unit_price) -> OrderItemModel:
        item.unit_price = unit_price
        self.db.flush()
        return item

    def update_order_version(self, order_id: str, old_version: int, new_data: dict) -> int:
        """
        UPDATE orders SET ... WHERE id = :id AND version = :old_version

        Returns the affected row count; 0 means someone else wrote first.
        """
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def delete_order(self, order: OrderModel) -> None:
        self.db.delete(order)
        self.db.commit()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order
