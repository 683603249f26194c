"""
Concurrency tests.

Runs competing writers against a file-backed SQLite database so each
worker thread holds its own connection and the write lock is contended.
"""

import threading
from datetime import timedelta

import pytest

from clubdesk import create_app
from clubdesk.extensions import db
from clubdesk.models import Booking, GameTable, InventoryMovement, PricelistCategory, PricelistItem, StaffMember
from clubdesk.services import booking_service, order_service, stock_ledger_service
from clubdesk.services.order_service import OrderLineRequest
from clubdesk.time_utils import utcnow


WORKERS = 8


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'venue.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_together(app, func, count=WORKERS):
    """Start count workers behind a barrier; return "ok" or the exception class name per worker."""
    barrier = threading.Barrier(count)
    results = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                barrier.wait(timeout=10)
                func()
                outcome = "ok"
            except Exception as exc:
                outcome = type(exc).__name__
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _seed_item(stock):
    category = PricelistCategory(name="Bar")
    db.session.add(category)
    db.session.flush()
    item = PricelistItem(
        category_id=category.id,
        name="Beer",
        price_cents=500,
        tracks_stock=True,
        initial_stock=stock,
        current_stock=stock,
    )
    staff = StaffMember(full_name="Alex Bartender")
    db.session.add_all([item, staff])
    db.session.commit()
    return item.id, staff.id


def test_same_slot_booked_once(file_app):
    with file_app.app_context():
        table = GameTable(name="Billiard 1", hourly_rate_cents=1200)
        db.session.add(table)
        db.session.commit()
        table_id = table.id

    start = (utcnow() + timedelta(days=1)).replace(hour=20, minute=0, second=0, microsecond=0)
    end = start + timedelta(hours=1)

    results = _run_together(
        file_app,
        lambda: booking_service.create_booking(table_id=table_id, start_time=start, end_time=end),
    )

    assert results.count("ok") == 1
    assert set(results) == {"ok", "ResourceNotAvailableError"}
    with file_app.app_context():
        assert Booking.query.filter_by(table_id=table_id).count() == 1


def test_orders_never_oversell(file_app):
    with file_app.app_context():
        item_id, staff_id = _seed_item(stock=5)

    results = _run_together(
        file_app,
        lambda: order_service.create_order(staff_id=staff_id, items=[OrderLineRequest(item_id, 1)]),
    )

    assert results.count("ok") == 5
    assert results.count("InsufficientStockError") == WORKERS - 5
    with file_app.app_context():
        stock = db.session.get(PricelistItem, item_id).current_stock
        assert stock == 0
        assert InventoryMovement.query.filter_by(pricelist_item_id=item_id, movement_type="sale").count() == 5
        assert stock == 5 + stock_ledger_service.movement_total(item_id) >= 0
        assert stock_ledger_service.stock_discrepancies() == []


def test_racing_cancels_return_stock_once(file_app):
    with file_app.app_context():
        item_id, staff_id = _seed_item(stock=5)
        order_id = order_service.create_order(staff_id=staff_id, items=[OrderLineRequest(item_id, 3)]).id

    results = _run_together(file_app, lambda: order_service.update_order_status(order_id, "cancelled"))

    assert "ok" in results
    with file_app.app_context():
        assert db.session.get(PricelistItem, item_id).current_stock == 5
        returns = InventoryMovement.query.filter_by(movement_type="return_on_cancel").all()
        assert [m.quantity_changed for m in returns] == [3]
        assert stock_ledger_service.stock_discrepancies() == []
