# pallet_orders/data/models/order_item.py
import uuid

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, JSON
from sqlalchemy.orm import relationship

from pallet_orders.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(String(100), nullable=False)
    product_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    #0 means "price not set yet", only valid for custom items
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    is_custom = Column(Boolean, nullable=False, default=False)
    custom_specs = Column(JSON, nullable=True)

    order = relationship("OrderModel", back_populates="items")

    @property
    def line_total(self):
        return self.unit_price * self.quantity
