# pallet_orders/api/__init__.py
from fastapi import FastAPI

from pallet_orders.api.errors import register_exception_handlers
from pallet_orders.api.routers import forms, health, order_items, orders


def register_api(app: FastAPI) -> FastAPI:
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(orders.router)
    app.include_router(orders.admin_router)
    app.include_router(order_items.router)
    app.include_router(forms.router)
    return app
