from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from ecommerce_store.api.main import app
from ecommerce_store.db.models import ChangeLog
from ecommerce_store.db.session import get_db


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload(customer, address):
    return {"customer_id": customer.id, "shipping_address_id": address.id}


def _item(product, subtotal):
    return {"product_id": product.id, "unit_price": subtotal, "quantity": 1, "subtotal": subtotal}


def _total(response):
    return Decimal(response.json()["total_amount"])


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Healthy"}


class TestOrderItemRoutes:
    def test_create_order_starts_empty(self, client, order_payload):
        response = client.post("/orders/", json=order_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["items"] == []
        assert _total(response) == Decimal("0")

    def test_unknown_status_rejected(self, client, order_payload):
        response = client.post("/orders/", json={**order_payload, "status": "teleported"})
        assert response.status_code == 422

    def test_item_lifecycle_keeps_total(self, client, order_payload, products):
        order_id = client.post("/orders/", json=order_payload).json()["id"]

        first = client.post(f"/orders/{order_id}/items", json=_item(products[0], "19.99"))
        assert first.status_code == 201
        assert first.json()["line_number"] == 1
        client.post(f"/orders/{order_id}/items", json=_item(products[1], "5.00"))
        assert _total(client.get(f"/orders/{order_id}")) == Decimal("24.99")

        response = client.delete(f"/orders/{order_id}/items/1")
        assert response.status_code == 200
        assert _total(response) == Decimal("5.00")
        assert [i["line_number"] for i in response.json()["items"]] == [2]

        response = client.patch(f"/orders/{order_id}/items/2", json={"subtotal": "12.50"})
        assert response.status_code == 200
        assert _total(client.get(f"/orders/{order_id}")) == Decimal("12.50")

        response = client.delete(f"/orders/{order_id}/items/2")
        assert _total(response) == Decimal("0")

    def test_move_item(self, client, order_payload, products):
        order_a = client.post("/orders/", json=order_payload).json()["id"]
        order_b = client.post("/orders/", json=order_payload).json()["id"]
        client.post(f"/orders/{order_a}/items", json=_item(products[0], "10.00"))

        response = client.patch(f"/orders/{order_a}/items/1", json={"order_id": order_b})

        assert response.status_code == 200
        assert response.json()["order_id"] == order_b
        assert _total(client.get(f"/orders/{order_a}")) == Decimal("0")
        assert _total(client.get(f"/orders/{order_b}")) == Decimal("10.00")

    def test_not_found(self, client, order_payload):
        assert client.get("/orders/999").status_code == 404

        order_id = client.post("/orders/", json=order_payload).json()["id"]
        assert client.delete(f"/orders/{order_id}/items/3").status_code == 404

    def test_zero_quantity_rejected_before_reaching_database(self, client, order_payload, products):
        order_id = client.post("/orders/", json=order_payload).json()["id"]

        response = client.post(f"/orders/{order_id}/items", json={**_item(products[0], "1.00"), "quantity": 0})

        assert response.status_code == 422

    def test_constraint_violation_maps_to_conflict(self, client, order_payload):
        order_id = client.post("/orders/", json=order_payload).json()["id"]

        response = client.post(
            f"/orders/{order_id}/items",
            json={"product_id": 4242, "unit_price": "1.00", "quantity": 1, "subtotal": "1.00"},
        )

        assert response.status_code == 409
        assert _total(client.get(f"/orders/{order_id}")) == Decimal("0")

    def test_item_routes_write_audit_entries(self, client, db, order_payload, products):
        order_id = client.post("/orders/", json=order_payload).json()["id"]
        client.post(f"/orders/{order_id}/items", json=_item(products[0], "3.00"), headers={"X-Actor": "alice"})
        client.delete(f"/orders/{order_id}/items/1", headers={"X-Actor": "bob"})

        entries = db.execute(select(ChangeLog).order_by(ChangeLog.id)).scalars().all()

        assert [(e.who, e.change_type, e.object_id) for e in entries] == [
            ("alice", "insert", f"{order_id}/1"),
            ("bob", "delete", f"{order_id}/1"),
        ]
        assert entries[0].change_data["subtotal"] == "3.00"

    def test_drift_endpoint(self, client, order_payload, products):
        order_id = client.post("/orders/", json=order_payload).json()["id"]
        client.post(f"/orders/{order_id}/items", json=_item(products[0], "3.00"))

        response = client.get("/orders/totals/drift")

        assert response.status_code == 200
        assert response.json() == []
