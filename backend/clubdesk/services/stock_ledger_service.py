# Overview: Service-layer operations for the stock ledger; encapsulates stock updates and the movement audit trail.

# backend/clubdesk/services/stock_ledger_service.py

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryMovement, PricelistItem
from ..models.inventory import (
    MOVEMENT_TYPES,
    MOVEMENT_PURCHASE,
    MOVEMENT_ADJUSTMENT_IN,
    MOVEMENT_ADJUSTMENT_OUT,
)
from ..validation import ConflictError, ValidationError, NotFoundError, require_positive_int
from clubdesk.time_utils import utcnow
from .catalog_service import get_item
from .concurrency import run_in_transaction
from .lookup_service import ReferenceLookup, get_reference_lookup
from .pagination import paginate
"""
Stock Ledger Invariants (authoritative)

- For every tracked item: current_stock == initial_stock + SUM(quantity_changed).
- current_stock never goes below zero.
- Every successful stock adjustment is paired with exactly one
  InventoryMovement row carrying the same signed delta, written in the same
  DB transaction. apply_movement() is that pairing; nothing else writes
  current_stock.
- Movements are append-only. There is no update or delete path.
"""


# Sign applied to the caller-supplied quantity for manually recorded movements.
# sale/return movements are only written by the order processor.
MANUAL_MOVEMENT_SIGNS = {
    MOVEMENT_PURCHASE: 1,
    MOVEMENT_ADJUSTMENT_IN: 1,
    MOVEMENT_ADJUSTMENT_OUT: -1,
}


class ItemNotTrackedError(ValidationError):
    """Stock operation on an item with tracks_stock=False."""


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds the stock on hand."""
    def __init__(self, *, item_id: int, item_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for item {item_name} (ID: {item_id}). "
            f"Requested: {requested}, Available: {available}",
            details={
                "item_id": item_id,
                "item_name": item_name,
                "requested": requested,
                "available": available,
            },
        )


class StaffNotFoundError(NotFoundError):
    """Acting staff member does not exist."""


def adjust_stock(item_id: int, delta: int) -> int:
    """
    Add delta to current_stock of a tracked item and return the new value.

    Runs inside the caller's transaction with the item row locked. Does not
    commit and does not write a movement; use apply_movement() for that.
    """
    item = get_item(item_id, lock=True)
    if not item.tracks_stock:
        raise ItemNotTrackedError(
            f"Pricelist item {item.name} (ID: {item_id}) does not track stock",
            details={"item_id": item_id},
        )

    current = item.current_stock or 0
    new_stock = current + delta
    if new_stock < 0:
        raise InsufficientStockError(
            item_id=item_id,
            item_name=item.name,
            requested=-delta,
            available=current,
        )

    item.current_stock = new_stock
    db.session.flush()
    return new_stock


def apply_movement(
    *,
    item_id: int,
    quantity_delta: int,
    movement_type: str,
    staff_id: int | None = None,
    reason: str | None = None,
) -> InventoryMovement:
    """
    Adjust stock and append the matching movement, in the caller's transaction.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")
    if quantity_delta == 0:
        raise ValidationError("quantity_changed must be non-zero")

    adjust_stock(item_id, quantity_delta)

    movement = InventoryMovement(
        pricelist_item_id=item_id,
        staff_id=staff_id,
        movement_type=movement_type,
        quantity_changed=quantity_delta,
        reason=reason,
        movement_date=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_movement(
    *,
    item_id: int,
    movement_type: str,
    quantity: int,
    staff_id: int | None = None,
    reason: str | None = None,
    lookup: ReferenceLookup | None = None,
) -> InventoryMovement:
    """
    Record a purchase or manual adjustment as its own transaction.

    quantity is a positive magnitude; the movement type gives the sign
    (adjustment_out removes stock).
    """
    if movement_type not in MANUAL_MOVEMENT_SIGNS:
        allowed = ", ".join(sorted(MANUAL_MOVEMENT_SIGNS))
        raise ValidationError(
            f"Invalid movement type: {movement_type}. Allowed: {allowed}",
            details={"allowed": sorted(MANUAL_MOVEMENT_SIGNS)},
        )
    require_positive_int(item_id, "pricelist_item_id")
    require_positive_int(quantity, "quantity")

    lookup = lookup or get_reference_lookup()
    if staff_id is not None and not lookup.staff_exists(staff_id):
        raise StaffNotFoundError(f"Staff member {staff_id} not found", details={"staff_id": staff_id})

    delta = MANUAL_MOVEMENT_SIGNS[movement_type] * quantity

    def _op():
        return apply_movement(
            item_id=item_id,
            quantity_delta=delta,
            movement_type=movement_type,
            staff_id=staff_id,
            reason=reason,
        )

    return run_in_transaction(_op)


def list_movements(
    *,
    item_id: int | None = None,
    staff_id: int | None = None,
    movement_type: str | None = None,
    page: int | None = None,
    page_size: int | None = None,
):
    """Newest first. Returns (movements, total, page, page_size)."""
    q = InventoryMovement.query
    if item_id is not None:
        q = q.filter(InventoryMovement.pricelist_item_id == item_id)
    if staff_id is not None:
        q = q.filter(InventoryMovement.staff_id == staff_id)
    if movement_type:
        q = q.filter(InventoryMovement.movement_type == movement_type)

    q = q.order_by(
        InventoryMovement.movement_date.desc(),
        InventoryMovement.id.desc(),
    )
    return paginate(q, page, page_size)


def movement_total(item_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(InventoryMovement.quantity_changed), 0)
    ).filter(
        InventoryMovement.pricelist_item_id == item_id,
    ).scalar()
    return int(total or 0)


def stock_discrepancies() -> list[dict]:
    """
    Tracked items whose stored stock disagrees with initial stock plus movements.

    An empty list means the ledger is consistent.
    """
    sums = dict(
        db.session.query(
            InventoryMovement.pricelist_item_id,
            func.sum(InventoryMovement.quantity_changed),
        ).group_by(InventoryMovement.pricelist_item_id).all()
    )

    problems = []
    tracked = PricelistItem.query.filter_by(tracks_stock=True).order_by(PricelistItem.id).all()
    for item in tracked:
        expected = (item.initial_stock or 0) + int(sums.get(item.id) or 0)
        if item.current_stock != expected:
            problems.append({
                "item_id": item.id,
                "name": item.name,
                "current_stock": item.current_stock,
                "expected_stock": expected,
            })
    return problems


def low_stock_items() -> list[PricelistItem]:
    return PricelistItem.query.filter(
        PricelistItem.tracks_stock.is_(True),
        PricelistItem.low_stock_threshold.isnot(None),
        PricelistItem.current_stock <= PricelistItem.low_stock_threshold,
    ).order_by(PricelistItem.name).all()
