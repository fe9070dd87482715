# pallet_orders/api/routers/order_items.py
from fastapi import APIRouter, Depends

from pallet_orders.api.deps import CurrentUser, require_admin
from pallet_orders.api.routers.orders import get_service
from pallet_orders.domain.schemas import ItemPriceIn, ItemPriceOut
from pallet_orders.services.order_service import OrderService

router = APIRouter(prefix="/admin/order-items", tags=["admin"])


@router.patch("/{item_id}", response_model=ItemPriceOut)
def update_item_price(
    item_id: str,
    payload: ItemPriceIn,
    _: CurrentUser = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    """Sets a line price (quoted custom items) and recomputes the order total."""
    return svc.update_item_price(item_id, payload.unit_price, expected_version=payload.expected_version)
