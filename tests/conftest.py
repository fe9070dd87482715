import os

#settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"
for _var in ("EMAIL_API_URL", "WEBHOOK_CONTACT_URL", "WEBHOOK_QUOTE_URL", "WEBHOOK_PICKUP_URL"):
    os.environ.pop(_var, None)

import pytest
from fastapi.testclient import TestClient

from pallet_orders.api.routers.orders import get_service
from pallet_orders.data.database import Base, SessionLocal, engine
from pallet_orders.main import app
from pallet_orders.services.order_service import OrderService

ADMIN = {"X-User-Id": "admin-1", "X-User-Email": "admin@example.com", "X-User-Roles": "admin"}
CUSTOMER = {
    "X-User-Id": "cust-1",
    "X-User-Email": "buyer@example.com",
    "X-User-Name": "Dana Buyer",
    "X-User-Roles": "approved",
}
OTHER_CUSTOMER = {"X-User-Id": "cust-2", "X-User-Roles": "approved"}


class RecordingNotifier:
    """Stands in for NotificationService; keeps what would have been sent."""

    def __init__(self):
        self.sent = []

    def dispatch(self, kind, payload):
        self.sent.append((kind, payload))
        return True

    @property
    def kinds(self):
        return [kind for kind, _ in self.sent]

    def last(self, kind):
        return [p for k, p in self.sent if k == kind][-1]


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(db, notifier):
    return OrderService(db, notifier=notifier)


@pytest.fixture
def client(db, notifier):
    app.dependency_overrides[get_service] = lambda: OrderService(db, notifier=notifier)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
