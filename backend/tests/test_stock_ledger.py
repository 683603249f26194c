"""
Stock ledger tests.

Covers stock adjustment, movement pairing, manual movements and the
conservation audit.
"""

import pytest

from clubdesk.extensions import db
from clubdesk.models import InventoryMovement, PricelistItem
from clubdesk.services import stock_ledger_service
from clubdesk.services.catalog_service import ItemNotFoundError, price_and_stock
from clubdesk.services.lookup_service import InMemoryReferenceLookup
from clubdesk.services.stock_ledger_service import (
    InsufficientStockError,
    ItemNotTrackedError,
    StaffNotFoundError,
)
from clubdesk.validation import ValidationError


def _stock(item_id):
    return db.session.get(PricelistItem, item_id).current_stock


def test_record_purchase_adds_stock_and_movement(db_session, make_item, staff):
    item = make_item("Cola", 300, stock=5)

    movement = stock_ledger_service.record_movement(
        item_id=item.id,
        movement_type="purchase",
        quantity=12,
        staff_id=staff.id,
        reason="Weekly delivery",
    )

    assert movement.quantity_changed == 12
    assert movement.movement_type == "purchase"
    assert _stock(item.id) == 17
    assert InventoryMovement.query.count() == 1


def test_adjustment_out_is_negative(db_session, make_item):
    item = make_item("Lime", 100, stock=10)

    movement = stock_ledger_service.record_movement(
        item_id=item.id, movement_type="adjustment_out", quantity=3, reason="Spoiled",
    )

    assert movement.quantity_changed == -3
    assert _stock(item.id) == 7


def test_adjustment_out_below_zero_rolls_back(db_session, make_item):
    item = make_item("Lime", 100, stock=2)

    with pytest.raises(InsufficientStockError) as exc:
        stock_ledger_service.record_movement(item_id=item.id, movement_type="adjustment_out", quantity=5)

    assert exc.value.details["available"] == 2
    assert exc.value.details["requested"] == 5
    assert _stock(item.id) == 2
    assert InventoryMovement.query.count() == 0


def test_sale_type_not_accepted_manually(db_session, make_item):
    item = make_item("Lime", 100, stock=2)

    with pytest.raises(ValidationError):
        stock_ledger_service.record_movement(item_id=item.id, movement_type="sale", quantity=1)


def test_quantity_must_be_positive(db_session, make_item):
    item = make_item("Lime", 100, stock=2)

    with pytest.raises(ValidationError):
        stock_ledger_service.record_movement(item_id=item.id, movement_type="purchase", quantity=0)
    with pytest.raises(ValidationError):
        stock_ledger_service.record_movement(item_id=item.id, movement_type="purchase", quantity=-4)


def test_untracked_item_rejected(db_session, make_item):
    item = make_item("Hookah", 2000, stock=None)

    with pytest.raises(ItemNotTrackedError):
        stock_ledger_service.record_movement(item_id=item.id, movement_type="purchase", quantity=1)
    assert InventoryMovement.query.count() == 0


def test_missing_item_is_not_found(db_session):
    with pytest.raises(ItemNotFoundError):
        stock_ledger_service.record_movement(item_id=999, movement_type="purchase", quantity=1)


def test_unknown_staff_is_not_found(db_session, make_item):
    item = make_item("Cola", 300, stock=5)

    with pytest.raises(StaffNotFoundError):
        stock_ledger_service.record_movement(
            item_id=item.id, movement_type="purchase", quantity=1, staff_id=4242,
        )


def test_in_memory_lookup_is_used_when_injected(db_session, make_item):
    item = make_item("Cola", 300, stock=5)
    lookup = InMemoryReferenceLookup(staff={7})

    with pytest.raises(StaffNotFoundError):
        stock_ledger_service.record_movement(
            item_id=item.id, movement_type="purchase", quantity=1, staff_id=8, lookup=lookup,
        )


def test_price_and_stock_snapshot(db_session, make_item):
    tracked = make_item("Beer", 500, stock=10)
    untracked = make_item("Hookah", 2000, stock=None)

    snap = price_and_stock(tracked.id)
    assert snap.price_cents == 500
    assert snap.current_stock == 10
    assert snap.tracks_stock is True

    snap = price_and_stock(untracked.id)
    assert snap.current_stock is None
    assert snap.tracks_stock is False


def test_conservation_holds_after_mixed_movements(db_session, make_item):
    item = make_item("Beer", 500, stock=10)

    stock_ledger_service.record_movement(item_id=item.id, movement_type="purchase", quantity=6)
    stock_ledger_service.record_movement(item_id=item.id, movement_type="adjustment_out", quantity=4)
    stock_ledger_service.record_movement(item_id=item.id, movement_type="adjustment_in", quantity=1)

    assert _stock(item.id) == 10 + stock_ledger_service.movement_total(item.id)
    assert stock_ledger_service.stock_discrepancies() == []


def test_discrepancy_reported_when_stock_edited_outside_ledger(db_session, make_item):
    item = make_item("Beer", 500, stock=10)
    db_session.get(PricelistItem, item.id).current_stock = 3
    db_session.commit()

    problems = stock_ledger_service.stock_discrepancies()

    assert len(problems) == 1
    assert problems[0]["item_id"] == item.id
    assert problems[0]["expected_stock"] == 10


def test_list_movements_filters_and_paginates(db_session, make_item):
    beer = make_item("Beer", 500, stock=10)
    cola = make_item("Cola", 300, stock=10)
    for _ in range(3):
        stock_ledger_service.record_movement(item_id=beer.id, movement_type="purchase", quantity=1)
    stock_ledger_service.record_movement(item_id=cola.id, movement_type="purchase", quantity=1)

    rows, total, page, page_size = stock_ledger_service.list_movements(item_id=beer.id, page=1, page_size=2)

    assert total == 3
    assert len(rows) == 2
    assert (page, page_size) == (1, 2)
    assert all(r.pricelist_item_id == beer.id for r in rows)


def test_low_stock_items(db_session, make_item):
    make_item("Beer", 500, stock=3, threshold=5)
    make_item("Cola", 300, stock=30, threshold=5)
    make_item("Hookah", 2000, stock=None)

    names = [i.name for i in stock_ledger_service.low_stock_items()]
    assert names == ["Beer"]


def test_get_category(db_session, category):
    from clubdesk.services.catalog_service import CategoryNotFoundError, get_category

    assert get_category(category.id).name == "Bar"
    with pytest.raises(CategoryNotFoundError):
        get_category(999)
