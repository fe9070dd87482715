# pallet_orders/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from pallet_orders.api.deps import CurrentUser, get_current_user, require_admin, require_approved
from pallet_orders.data.database import get_db
from pallet_orders.domain.order_state import OrderStatus
from pallet_orders.domain.schemas import (
    DeliveryPriceIn,
    EstimateIn,
    EstimateOut,
    OrderCreate,
    OrderOut,
    StatusUpdateIn,
)
from pallet_orders.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user: CurrentUser = Depends(require_approved),
    svc: OrderService = Depends(get_service),
):
    """
    Places an order from the customer cart snapshot.
    Notifications are sent in the background.
    """
    return svc.create_order(
        customer_id=user.id,
        items=payload.items,
        delivery_notes=payload.delivery_notes,
        customer_email=user.email,
        customer_name=user.name,
    )


@router.get("/", response_model=List[OrderOut])
def list_my_orders(
    user: CurrentUser = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    return svc.list_orders(customer_id=user.id)


@router.post("/estimate", response_model=EstimateOut)
def estimate(payload: EstimateIn, svc: OrderService = Depends(get_service)):
    return svc.estimate(payload.items)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    return svc.get_order(order_id, user_id=None if user.is_admin else user.id)


# =====================================================
# ADMIN
# =====================================================
@admin_router.get("/", response_model=List[OrderOut])
def list_orders(
    status: OrderStatus | None = Query(None),
    _: CurrentUser = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    return svc.list_orders(status=status.value if status else None)


@admin_router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: str,
    payload: StatusUpdateIn,
    _: CurrentUser = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    return svc.update_status(
        order_id,
        payload.status,
        delivery_date=payload.delivery_date,
        expected_version=payload.expected_version,
    )


@admin_router.patch("/{order_id}/delivery-price", response_model=OrderOut)
def set_delivery_price(
    order_id: str,
    payload: DeliveryPriceIn,
    _: CurrentUser = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    return svc.set_delivery_price(order_id, payload.delivery_price, expected_version=payload.expected_version)


@admin_router.delete("/{order_id}", status_code=204)
def delete_order(
    order_id: str,
    _: CurrentUser = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    svc.delete_order(order_id)
    return Response(status_code=204)
