"""
HTTP layer tests.

Exercises JSON shapes, status codes and error-category mapping of the
order, booking, inventory and health endpoints.
"""

import pytest

from clubdesk.extensions import db
from clubdesk.models import PricelistItem


def _iso(dt):
    return dt.isoformat() + "Z"


class TestOrderRoutes:
    def test_create_and_get_order(self, client, db_session, staff, make_item, table):
        beer = make_item("Beer", 500, stock=10)

        resp = client.post("/api/orders", json={
            "staff_id": staff.id,
            "table_id": table.id,
            "payment_method": "card",
            "items": [{"pricelist_item_id": beer.id, "quantity": 2, "notes": "cold"}],
        })

        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["total_amount_cents"] == 1000
        assert order["staff_name"] == "Alex Bartender"
        assert order["table_name"] == "Billiard 1"
        assert order["items"][0]["item_name"] == "Beer"
        assert order["items"][0]["notes"] == "cold"

        resp = client.get(f"/api/orders/{order['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["order"]["id"] == order["id"]

    def test_insufficient_stock_is_conflict(self, client, db_session, staff, make_item):
        beer = make_item("Beer", 500, stock=1)

        resp = client.post("/api/orders", json={
            "staff_id": staff.id,
            "items": [{"pricelist_item_id": beer.id, "quantity": 5}],
        })

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["details"]["available"] == 1
        assert body["details"]["requested"] == 5

    def test_validation_errors_are_400(self, client, db_session, staff, make_item):
        beer = make_item("Beer", 500, stock=1)

        resp = client.post("/api/orders", json={"staff_id": staff.id, "items": []})
        assert resp.status_code == 400

        resp = client.post("/api/orders", json={
            "staff_id": staff.id,
            "items": [{"pricelist_item_id": beer.id, "quantity": 1.5}],
        })
        assert resp.status_code == 400

        resp = client.post("/api/orders", json={"items": [{"pricelist_item_id": beer.id, "quantity": 1}]})
        assert resp.status_code == 400
        assert "staff_id" in resp.get_json()["error"]

    def test_unknown_item_is_404(self, client, db_session, staff):
        resp = client.post("/api/orders", json={
            "staff_id": staff.id,
            "items": [{"pricelist_item_id": 555, "quantity": 1}],
        })
        assert resp.status_code == 404

    def test_missing_order_is_404(self, client, db_session):
        assert client.get("/api/orders/999").status_code == 404
        assert client.delete("/api/orders/999").status_code == 404

    def test_status_update_and_terminal_conflict(self, client, db_session, staff, make_item):
        beer = make_item("Beer", 500, stock=10)
        order_id = client.post("/api/orders", json={
            "staff_id": staff.id,
            "items": [{"pricelist_item_id": beer.id, "quantity": 3}],
        }).get_json()["order"]["id"]

        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "cancelled"
        assert db.session.get(PricelistItem, beer.id).current_stock == 10

        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "paid"})
        assert resp.status_code == 409

        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "nope"})
        assert resp.status_code == 400

        resp = client.patch(f"/api/orders/{order_id}/status", json={})
        assert resp.status_code == 400

    def test_list_envelope(self, client, db_session, staff, make_item):
        chips = make_item("Chips", 50, stock=None)
        for _ in range(3):
            client.post("/api/orders", json={
                "staff_id": staff.id,
                "items": [{"pricelist_item_id": chips.id, "quantity": 1}],
            })

        resp = client.get("/api/orders?page=2&page_size=2")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["total"] == 3
        assert body["page"] == 2
        assert body["page_size"] == 2
        assert len(body["data"]) == 1
        assert "items" not in body["data"][0]

    def test_list_bad_filter_is_400(self, client, db_session):
        assert client.get("/api/orders?client_id=abc").status_code == 400
        assert client.get("/api/orders?date=yesterday").status_code == 400

    def test_delete_order(self, client, db_session, staff, make_item):
        beer = make_item("Beer", 500, stock=10)
        order_id = client.post("/api/orders", json={
            "staff_id": staff.id,
            "items": [{"pricelist_item_id": beer.id, "quantity": 3}],
        }).get_json()["order"]["id"]

        resp = client.delete(f"/api/orders/{order_id}")

        assert resp.status_code == 200
        assert db.session.get(PricelistItem, beer.id).current_stock == 10
        assert client.get(f"/api/orders/{order_id}").status_code == 404


class TestBookingRoutes:
    def test_create_conflict_and_availability(self, client, db_session, table, slot):
        start, end = slot(0, 60)

        resp = client.post("/api/bookings", json={
            "table_id": table.id,
            "start_time": _iso(start),
            "end_time": _iso(end),
            "number_of_guests": 2,
        })
        assert resp.status_code == 201
        booking = resp.get_json()["booking"]
        assert booking["status"] == "confirmed"
        assert booking["table_name"] == "Billiard 1"
        assert booking["start_time"] == _iso(start)

        other_start, other_end = slot(30, 60)
        resp = client.post("/api/bookings", json={
            "table_id": table.id,
            "start_time": _iso(other_start),
            "end_time": _iso(other_end),
        })
        assert resp.status_code == 409

        resp = client.get(
            f"/api/bookings/availability?table_id={table.id}"
            f"&start_time={_iso(other_start)}&end_time={_iso(other_end)}"
        )
        assert resp.get_json() == {"table_id": table.id, "available": False}

        next_start, next_end = slot(60, 60)
        resp = client.get(
            f"/api/bookings/availability?table_id={table.id}"
            f"&start_time={_iso(next_start)}&end_time={_iso(next_end)}"
        )
        assert resp.get_json()["available"] is True

    def test_availability_requires_params(self, client, db_session):
        assert client.get("/api/bookings/availability?table_id=1").status_code == 400

    def test_availability_rejects_bad_window_and_unknown_table(self, client, db_session, table, slot, make_booking):
        make_booking(*slot(0, 60))
        start, end = slot(0, 60)
        url = "/api/bookings/availability?table_id={}&start_time={}&end_time={}"

        resp = client.get(url.format(table.id, _iso(end), _iso(start)))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "end_time must be after start_time"

        assert client.get(url.format(table.id, _iso(start), _iso(start))).status_code == 400

        resp = client.get(url.format(9999, _iso(start), _iso(end)))
        assert resp.status_code == 404
        assert resp.get_json()["details"] == {"table_id": 9999}

    def test_create_validation(self, client, db_session, table, slot):
        start, end = slot(0, 60)

        resp = client.post("/api/bookings", json={"table_id": table.id, "start_time": _iso(start)})
        assert resp.status_code == 400
        assert "end_time" in resp.get_json()["error"]

        resp = client.post("/api/bookings", json={
            "table_id": table.id,
            "start_time": "not-a-date",
            "end_time": _iso(end),
        })
        assert resp.status_code == 400

        resp = client.post("/api/bookings", json={
            "table_id": 999,
            "start_time": _iso(start),
            "end_time": _iso(end),
        })
        assert resp.status_code == 404

    def test_update_cancel_complete_delete(self, client, db_session, table, slot):
        start, end = slot(0, 60)
        booking_id = client.post("/api/bookings", json={
            "table_id": table.id,
            "start_time": _iso(start),
            "end_time": _iso(end),
        }).get_json()["booking"]["id"]

        resp = client.put(f"/api/bookings/{booking_id}", json={"notes": "birthday"})
        assert resp.status_code == 200
        assert resp.get_json()["booking"]["notes"] == "birthday"

        resp = client.patch(f"/api/bookings/{booking_id}/check-in")
        assert resp.get_json()["booking"]["status"] == "checked-in"

        resp = client.patch(f"/api/bookings/{booking_id}/complete")
        assert resp.get_json()["booking"]["status"] == "completed"

        assert client.patch(f"/api/bookings/{booking_id}/cancel").status_code == 409
        assert client.put(f"/api/bookings/{booking_id}", json={"notes": "x"}).status_code == 409

        assert client.delete(f"/api/bookings/{booking_id}").status_code == 200
        assert client.get(f"/api/bookings/{booking_id}").status_code == 404

    def test_list_bookings(self, client, db_session, table, slot, make_booking):
        make_booking(*slot(0, 60))
        make_booking(*slot(120, 60), status="pending")

        body = client.get(f"/api/bookings?table_id={table.id}&status=pending").get_json()

        assert body["total"] == 1
        assert body["data"][0]["status"] == "pending"


class TestInventoryRoutes:
    def test_record_and_list_movements(self, client, db_session, make_item, staff):
        beer = make_item("Beer", 500, stock=4)

        resp = client.post("/api/inventory-movements", json={
            "pricelist_item_id": beer.id,
            "movement_type": "purchase",
            "quantity": 6,
            "staff_id": staff.id,
        })
        assert resp.status_code == 201
        assert resp.get_json()["current_stock"] == 10

        resp = client.post("/api/inventory-movements", json={
            "pricelist_item_id": beer.id,
            "movement_type": "adjustment_out",
            "quantity": 50,
        })
        assert resp.status_code == 409

        body = client.get(f"/api/inventory-movements?pricelist_item_id={beer.id}").get_json()
        assert body["total"] == 1
        assert body["data"][0]["quantity_changed"] == 6

    def test_record_movement_validation(self, client, db_session, make_item):
        beer = make_item("Beer", 500, stock=4)

        resp = client.post("/api/inventory-movements", json={"pricelist_item_id": beer.id})
        assert resp.status_code == 400

        resp = client.post("/api/inventory-movements", json={
            "pricelist_item_id": beer.id,
            "movement_type": "sale",
            "quantity": 1,
        })
        assert resp.status_code == 400

        resp = client.post("/api/inventory-movements", json={
            "pricelist_item_id": beer.id,
            "movement_type": "purchase",
            "quantity": 1,
            "current_stock": 99,
        })
        assert resp.status_code == 400

    def test_item_snapshot(self, client, db_session, make_item):
        beer = make_item("Beer", 500, stock=4)

        resp = client.get(f"/api/inventory/items/{beer.id}")
        assert resp.status_code == 200
        assert resp.get_json()["current_stock"] == 4

        assert client.get("/api/inventory/items/999").status_code == 404

    def test_create_and_update_item(self, client, db_session, category):
        resp = client.post("/api/inventory/items", json={
            "category_id": category.id,
            "name": "Cola",
            "price_cents": 300,
            "tracks_stock": True,
            "current_stock": 24,
        })
        assert resp.status_code == 201
        item = resp.get_json()["item"]
        assert item["current_stock"] == 24
        assert db.session.get(PricelistItem, item["id"]).initial_stock == 24

        resp = client.patch(f"/api/inventory/items/{item['id']}", json={"current_stock": 100})
        assert resp.status_code == 400
        assert "inventory movements" in resp.get_json()["error"]

        resp = client.patch(f"/api/inventory/items/{item['id']}", json={"tracks_stock": False})
        assert resp.status_code == 200
        assert resp.get_json()["item"]["current_stock"] is None

        resp = client.post("/api/inventory/items", json={"category_id": 999, "name": "X", "price_cents": 100})
        assert resp.status_code == 404
        assert client.patch("/api/inventory/items/999", json={"name": "X"}).status_code == 404


def test_health(client, db_session):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["orders"] == 0


def test_unexpected_failure_is_opaque_500(client, db_session, staff, make_item, monkeypatch):
    from clubdesk.services import order_service

    def boom(**kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(order_service, "create_order", boom)
    chips = make_item("Chips", 50, stock=None)

    resp = client.post("/api/orders", json={
        "staff_id": staff.id,
        "items": [{"pricelist_item_id": chips.id, "quantity": 1}],
    })

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}


@pytest.mark.parametrize("target, url", [
    ("clubdesk.services.order_service.get_order", "/api/orders/1"),
    ("clubdesk.services.booking_service.get_booking", "/api/bookings/1"),
    ("clubdesk.services.stock_ledger_service.list_movements", "/api/inventory-movements"),
    ("clubdesk.routes.inventory.price_and_stock", "/api/inventory/items/1"),
])
def test_read_endpoints_hide_unexpected_failures(client, db_session, monkeypatch, target, url):
    def boom(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(target, boom)

    resp = client.get(url)

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}
