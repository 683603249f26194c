from __future__ import annotations

from ..extensions import db
from clubdesk.time_utils import to_utc_z

ITEM_TYPES = ("BAR", "HOOKAH", "SNACK", "SERVICE")


class PricelistCategory(db.Model):
    __tablename__ = "pricelist_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PricelistItem(db.Model):
    """
    Sellable catalog item (bar, hookah, snacks, services).

    STOCK DESIGN DECISION:
    current_stock is a stored quantity, kept in step with the append-only
    inventory_movements table by the stock ledger service:
    - current_stock == initial_stock + SUM(inventory_movements.quantity_changed)
    - current_stock and initial_stock are NULL when tracks_stock is False
    - current_stock never goes below zero

    catalog_service sets the opening count when tracking starts; after that
    only services.stock_ledger_service writes current_stock.
    """
    __tablename__ = "pricelist_items"
    __table_args__ = (
        db.Index("ix_pricelist_items_category_name", "category_id", "name"),
        db.CheckConstraint("price_cents > 0", name="ck_pricelist_items_price_positive"),
        db.CheckConstraint(
            "current_stock IS NULL OR current_stock >= 0",
            name="ck_pricelist_items_stock_non_negative",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("pricelist_categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    item_type = db.Column(db.String(16), nullable=False, default="BAR")

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    is_available = db.Column(db.Boolean, nullable=False, default=True)

    tracks_stock = db.Column(db.Boolean, nullable=False, default=False)
    initial_stock = db.Column(db.Integer, nullable=True)
    current_stock = db.Column(db.Integer, nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("PricelistCategory", backref=db.backref("items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        if not self.tracks_stock or self.low_stock_threshold is None:
            return False
        return (self.current_stock or 0) <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<PricelistItem id={self.id} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "item_type": self.item_type,
            "price_cents": self.price_cents,
            "is_available": self.is_available,
            "tracks_stock": self.tracks_stock,
            "current_stock": self.current_stock if self.tracks_stock else None,
            "low_stock_threshold": self.low_stock_threshold if self.tracks_stock else None,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
