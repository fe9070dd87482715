from decimal import Decimal

from tests.conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER

CART = {
    "items": [
        {"product_id": "gma-48x40", "product_name": "GMA 48x40 Grade A", "quantity": 10, "unit_price": 8.5},
        {
            "product_id": "custom",
            "product_name": "Custom 42x42",
            "quantity": 5,
            "unit_price": 0,
            "is_custom": True,
            "custom_specs": {"length": 42, "width": 42},
        },
    ],
    "delivery_notes": "Call before arrival",
}


def place_order(client):
    resp = client.post("/orders/", json=CART, headers=CUSTOMER)
    assert resp.status_code == 201, resp.text
    return resp.json()


def custom_item_id(order):
    return next(i["id"] for i in order["items"] if i["is_custom"])


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "ok"}


class TestCustomerEndpoints:
    def test_place_order(self, client, notifier):
        order = place_order(client)

        assert order["status"] == "pending"
        assert order["customer_id"] == "cust-1"
        assert order["customer_email"] == "buyer@example.com"
        assert Decimal(order["total"]) == Decimal("85")
        assert order["missing"] == ["delivery_price", "delivery_date", "custom_item_prices"]
        assert order["unpriced_item_ids"] == [custom_item_id(order)]
        assert notifier.kinds == ["order_confirmation", "admin_new_order"]

    def test_requires_identity(self, client):
        resp = client.post("/orders/", json=CART)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized", "code": "unauthorized"}

    def test_requires_approved_account(self, client):
        resp = client.post("/orders/", json=CART, headers={"X-User-Id": "new-user"})
        assert resp.status_code == 403
        assert resp.json()["error"] == "Account is pending approval"

    def test_rejects_unpriced_catalog_item(self, client):
        body = {"items": [{"product_id": "p", "product_name": "P", "quantity": 1, "unit_price": 0}]}
        resp = client.post("/orders/", json=body, headers=CUSTOMER)
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_schema_errors_use_validation_body(self, client):
        body = {"items": [{"product_id": "p", "product_name": "P", "quantity": 0, "unit_price": 1}]}
        resp = client.post("/orders/", json=body, headers=CUSTOMER)
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert resp.json()["error"].startswith("items.0.quantity:")

    def test_own_orders_only(self, client):
        order = place_order(client)

        assert [o["id"] for o in client.get("/orders/", headers=CUSTOMER).json()] == [order["id"]]
        assert client.get("/orders/", headers=OTHER_CUSTOMER).json() == []
        assert client.get(f"/orders/{order['id']}", headers=CUSTOMER).status_code == 200
        assert client.get(f"/orders/{order['id']}", headers=OTHER_CUSTOMER).status_code == 403
        assert client.get(f"/orders/{order['id']}", headers=ADMIN).status_code == 200

    def test_unknown_order(self, client):
        resp = client.get("/orders/does-not-exist", headers=CUSTOMER)
        assert resp.status_code == 404
        assert resp.json()["error"] == "Order not found"

    def test_estimate(self, client):
        body = {"items": [{"quantity": 10, "unit_price": 8.5}, {"quantity": 1, "unit_price": 0, "is_custom": True}]}
        resp = client.post("/orders/estimate", json=body)

        assert resp.status_code == 200
        data = resp.json()
        assert Decimal(data["subtotal"]) == Decimal("85")
        assert Decimal(data["delivery_fee"]) == Decimal("50")
        assert Decimal(data["total"]) == Decimal("135")
        assert data["has_custom_items"] is True


class TestAdminEndpoints:
    def test_customer_is_forbidden(self, client):
        assert client.get("/admin/orders/", headers=CUSTOMER).status_code == 403

    def test_full_fulfillment_flow(self, client, notifier):
        order = place_order(client)
        item_id = custom_item_id(order)

        resp = client.patch(f"/admin/order-items/{item_id}", json={"unit_price": 20}, headers=ADMIN)
        assert resp.status_code == 200, resp.text
        assert Decimal(resp.json()["order_total"]) == Decimal("185")
        assert resp.json()["order_version"] == 2

        resp = client.patch(
            f"/admin/orders/{order['id']}/delivery-price",
            json={"delivery_price": 0, "expected_version": 2},
            headers=ADMIN,
        )
        assert resp.status_code == 200, resp.text

        resp = client.patch(
            f"/admin/orders/{order['id']}/status",
            json={"status": "confirmed", "delivery_date": "2026-11-02"},
            headers=ADMIN,
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["status"] == "confirmed"
        assert data["delivery_date"] == "2026-11-02"
        assert Decimal(data["total"]) == Decimal("185")
        assert data["pricing_complete"] is True

        assert "custom_price_set" in notifier.kinds
        assert notifier.kinds[-1] == "order_status_update"

    def test_confirm_before_pricing(self, client):
        order = place_order(client)

        resp = client.patch(
            f"/admin/orders/{order['id']}/status",
            json={"status": "confirmed", "delivery_date": "2026-11-02"},
            headers=ADMIN,
        )

        assert resp.status_code == 409
        body = resp.json()
        assert body["code"] == "precondition_failed"
        assert body["missing"] == ["delivery_price", "custom_item_prices"]
        assert body["unpriced_item_ids"] == [custom_item_id(order)]

    def test_stale_version(self, client):
        order = place_order(client)
        url = f"/admin/orders/{order['id']}/delivery-price"

        assert client.patch(url, json={"delivery_price": 40, "expected_version": 1}, headers=ADMIN).status_code == 200
        resp = client.patch(url, json={"delivery_price": 45, "expected_version": 1}, headers=ADMIN)

        assert resp.status_code == 409
        assert resp.json()["code"] == "version_conflict"

    def test_negative_delivery_price(self, client):
        order = place_order(client)
        resp = client.patch(f"/admin/orders/{order['id']}/delivery-price", json={"delivery_price": -1}, headers=ADMIN)
        assert resp.status_code == 400

    def test_list_by_status(self, client):
        order = place_order(client)
        client.patch(f"/admin/orders/{order['id']}/status", json={"status": "cancelled"}, headers=ADMIN)

        cancelled = client.get("/admin/orders/", params={"status": "cancelled"}, headers=ADMIN).json()
        pending = client.get("/admin/orders/", params={"status": "pending"}, headers=ADMIN).json()
        assert [o["id"] for o in cancelled] == [order["id"]]
        assert pending == []

    def test_delete(self, client):
        order = place_order(client)

        assert client.delete(f"/admin/orders/{order['id']}", headers=ADMIN).status_code == 204
        assert client.get(f"/orders/{order['id']}", headers=ADMIN).status_code == 404


class TestPriceInput:
    def test_non_numeric_item_price(self, client):
        order = place_order(client)

        for bad in ("abc", "20", True, None):
            resp = client.patch(f"/admin/order-items/{custom_item_id(order)}", json={"unit_price": bad}, headers=ADMIN)
            assert resp.status_code == 400, bad
            assert resp.json()["code"] == "validation_error"

        assert Decimal(client.get(f"/orders/{order['id']}", headers=ADMIN).json()["total"]) == Decimal("85")

    def test_non_numeric_delivery_price(self, client):
        order = place_order(client)

        resp = client.patch(f"/admin/orders/{order['id']}/delivery-price", json={"delivery_price": "15"}, headers=ADMIN)

        assert resp.status_code == 400
        assert resp.json()["error"].startswith("delivery_price")

    def test_float_item_price(self, client):
        order = place_order(client)

        resp = client.patch(f"/admin/order-items/{custom_item_id(order)}", json={"unit_price": 19.99}, headers=ADMIN)

        assert resp.status_code == 200
        assert Decimal(resp.json()["order_total"]) == Decimal("184.95")
