# pallet_orders/data/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Date, Numeric, Text
from sqlalchemy.orm import relationship

from pallet_orders.data.database import Base
from pallet_orders.domain.order_state import INITIAL_STATE


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(String(64), nullable=False, index=True)
    customer_email = Column(String(254), nullable=True)
    customer_name = Column(String(200), nullable=True)

    status = Column(String(20), nullable=False, default=INITIAL_STATE.value, index=True)
    delivery_price = Column(Numeric(12, 2), nullable=True)  # set by admin only
    delivery_date = Column(Date, nullable=True)
    delivery_notes = Column(Text, nullable=False, default="")
    total = Column(Numeric(12, 2), nullable=False, default=0)

    #optimistic locking, bumped on every mutation
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )
