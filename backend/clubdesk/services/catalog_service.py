# Overview: Catalog lookups used by the stock ledger and the order processor, plus item maintenance.

from __future__ import annotations

from typing import NamedTuple

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryMovement, PricelistCategory, PricelistItem
from ..models.catalog import ITEM_TYPES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_money,
    validate_payload,
)
from .concurrency import lock_for_update, run_in_transaction


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "category_id",
        "name",
        "description",
        "sku",
        "item_type",
        "price_cents",
        "is_available",
        "tracks_stock",
        "current_stock",
        "low_stock_threshold",
    },
    required_on_create={"category_id", "name", "price_cents"},
)


class ItemNotFoundError(NotFoundError):
    """Pricelist item does not exist."""


class CategoryNotFoundError(NotFoundError):
    """Pricelist category does not exist."""


class ItemConflictError(ConflictError):
    """SKU already belongs to another item."""


class TrackedStockEditError(ValidationError):
    """Direct current_stock write on a tracked item; stock moves through the ledger."""


class PriceAndStock(NamedTuple):
    price_cents: int
    current_stock: int | None
    name: str
    tracks_stock: bool
    is_available: bool


def get_item(item_id: int, *, lock: bool = False) -> PricelistItem:
    query = db.session.query(PricelistItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise ItemNotFoundError(f"Pricelist item {item_id} not found", details={"item_id": item_id})
    return item


def price_and_stock(item_id: int, *, lock: bool = False) -> PriceAndStock:
    """
    Snapshot of what an order needs to price and check one line.

    With lock=True the item row stays locked until the caller's transaction
    ends, so the stock read here is the stock the ledger will adjust.
    """
    item = get_item(item_id, lock=lock)
    return PriceAndStock(
        price_cents=item.price_cents,
        current_stock=item.current_stock if item.tracks_stock else None,
        name=item.name,
        tracks_stock=bool(item.tracks_stock),
        is_available=bool(item.is_available),
    )


def get_category(category_id: int) -> PricelistCategory:
    category = db.session.get(PricelistCategory, category_id)
    if category is None:
        raise CategoryNotFoundError(
            f"Pricelist category {category_id} not found",
            details={"category_id": category_id},
        )
    return category


def _enforce_item_rules(fields: dict) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("name cannot be blank")

    enforce_rules_money(fields, "price_cents")
    if fields.get("price_cents") == 0:
        raise ValidationError("price_cents must be > 0")

    item_type = fields.get("item_type")
    if item_type is not None and item_type not in ITEM_TYPES:
        raise ValidationError(f"Invalid item_type: {item_type}", details={"allowed": list(ITEM_TYPES)})

    for key in ("current_stock", "low_stock_threshold"):
        value = fields.get(key)
        if value is not None and value < 0:
            raise ValidationError(f"{key} cannot be negative")


def _reject_untracked_stock_fields(current_stock, low_stock_threshold) -> None:
    if current_stock is not None:
        raise ValidationError("current_stock requires tracks_stock to be true")
    if low_stock_threshold is not None:
        raise ValidationError("low_stock_threshold requires tracks_stock to be true")


def _ensure_sku_free(sku: str | None, *, exclude_item_id: int | None = None) -> None:
    if not sku:
        return
    q = db.session.query(PricelistItem.id).filter(PricelistItem.sku == sku)
    if exclude_item_id is not None:
        q = q.filter(PricelistItem.id != exclude_item_id)
    if q.first() is not None:
        raise ItemConflictError(f"SKU {sku} is already in use", details={"sku": sku})


def _start_tracking(item: PricelistItem, stock: int) -> None:
    """
    Put the item under the stock ledger with an opening count.

    Movements recorded during an earlier tracking period are kept, so
    initial_stock absorbs them and current_stock == initial_stock + SUM(movements)
    holds from the first tracked moment.
    """
    moved = db.session.query(
        func.coalesce(func.sum(InventoryMovement.quantity_changed), 0)
    ).filter(
        InventoryMovement.pricelist_item_id == item.id,
    ).scalar()
    item.tracks_stock = True
    item.current_stock = stock
    item.initial_stock = stock - int(moved or 0)


def _stop_tracking(item: PricelistItem) -> None:
    item.tracks_stock = False
    item.current_stock = None
    item.initial_stock = None
    item.low_stock_threshold = None


def create_item(
    *,
    category_id: int,
    name: str,
    price_cents: int,
    item_type: str = "BAR",
    description: str | None = None,
    sku: str | None = None,
    is_available: bool = True,
    tracks_stock: bool = False,
    current_stock: int | None = None,
    low_stock_threshold: int | None = None,
) -> PricelistItem:
    """
    Add an item to the catalog.

    A tracked item starts with current_stock (0 when omitted) as its
    initial stock. Stock and threshold are refused for untracked items.
    """
    _enforce_item_rules({
        "name": name,
        "price_cents": price_cents,
        "item_type": item_type,
        "current_stock": current_stock,
        "low_stock_threshold": low_stock_threshold,
    })
    if tracks_stock:
        current_stock = current_stock if current_stock is not None else 0
    else:
        _reject_untracked_stock_fields(current_stock, low_stock_threshold)

    def _op():
        get_category(category_id)
        _ensure_sku_free(sku)
        item = PricelistItem(
            category_id=category_id,
            name=name.strip(),
            description=description,
            sku=sku or None,
            item_type=item_type,
            price_cents=price_cents,
            is_available=is_available,
            tracks_stock=bool(tracks_stock),
            initial_stock=current_stock,
            current_stock=current_stock,
            low_stock_threshold=low_stock_threshold,
        )
        db.session.add(item)
        db.session.flush()
        return item.id

    item_id = run_in_transaction(_op)
    return get_item(item_id)


def update_item(item_id: int, patch: dict) -> PricelistItem:
    """
    Apply only the fields present in patch.

    tracks_stock false -> true takes current_stock (default 0) as the
    opening count. true -> false clears the stock columns and threshold.
    On an item that stays tracked, current_stock is not writable here;
    use stock_ledger_service.record_movement.
    """
    cleaned = validate_payload(model=PricelistItem, payload=patch, policy=ITEM_POLICY, partial=True)
    if not cleaned:
        raise ValidationError("No fields to update")
    _enforce_item_rules(cleaned)

    def _op():
        fields = dict(cleaned)
        item = get_item(item_id, lock=True)
        if "category_id" in fields:
            get_category(fields["category_id"])
        _ensure_sku_free(fields.get("sku"), exclude_item_id=item_id)

        tracks = fields.pop("tracks_stock", bool(item.tracks_stock))
        stock_given = "current_stock" in fields
        stock = fields.pop("current_stock", None)
        threshold_given = "low_stock_threshold" in fields
        threshold = fields.pop("low_stock_threshold", None)

        if not tracks:
            _reject_untracked_stock_fields(stock, threshold)
            if item.tracks_stock:
                _stop_tracking(item)
        elif not item.tracks_stock:
            _start_tracking(item, stock if stock is not None else 0)
        elif stock_given:
            raise TrackedStockEditError(
                f"Stock of tracked item {item.name} (ID: {item_id}) changes only through inventory movements",
                details={"item_id": item_id, "current_stock": item.current_stock},
            )

        if tracks and threshold_given:
            item.low_stock_threshold = threshold

        for key, value in fields.items():
            setattr(item, key, value)
        db.session.flush()
        return item.id

    run_in_transaction(_op)
    return get_item(item_id)


def set_stock_tracking(
    item_id: int,
    tracks_stock: bool,
    *,
    current_stock: int | None = None,
    low_stock_threshold: int | None = None,
) -> PricelistItem:
    """Switch stock tracking on (with an opening count) or off."""
    patch = {"tracks_stock": tracks_stock}
    if current_stock is not None:
        patch["current_stock"] = current_stock
    if low_stock_threshold is not None:
        patch["low_stock_threshold"] = low_stock_threshold
    return update_item(item_id, patch)
