#import all models so SQLAlchemy registers them in Base.metadata

from pallet_orders.data.models.order import OrderModel
from pallet_orders.data.models.order_item import OrderItemModel

__all__ = ["OrderModel", "OrderItemModel"]
