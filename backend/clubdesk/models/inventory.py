from __future__ import annotations

from ..extensions import db
from clubdesk.time_utils import to_utc_z

MOVEMENT_SALE = "sale"
MOVEMENT_PURCHASE = "purchase"
MOVEMENT_ADJUSTMENT_IN = "adjustment_in"
MOVEMENT_ADJUSTMENT_OUT = "adjustment_out"
MOVEMENT_RETURN_ON_CANCEL = "return_on_cancel"
MOVEMENT_RETURN_ON_DELETE = "return_on_delete"

MOVEMENT_TYPES = (
    MOVEMENT_SALE,
    MOVEMENT_PURCHASE,
    MOVEMENT_ADJUSTMENT_IN,
    MOVEMENT_ADJUSTMENT_OUT,
    MOVEMENT_RETURN_ON_CANCEL,
    MOVEMENT_RETURN_ON_DELETE,
)


class InventoryMovement(db.Model):
    """
    One signed stock change of a tracked pricelist item.

    Append-only: rows are never updated or deleted. Corrections are new
    movements. Each row is written in the same DB transaction as the
    matching pricelist_items.current_stock update.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmv_item_date", "pricelist_item_id", "movement_date"),
        db.Index("ix_invmv_type_date", "movement_type", "movement_date"),
        db.CheckConstraint("quantity_changed <> 0", name="ck_invmv_quantity_nonzero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    pricelist_item_id = db.Column(db.Integer, db.ForeignKey("pricelist_items.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff_members.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(32), nullable=False)
    quantity_changed = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    movement_date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    pricelist_item = db.relationship("PricelistItem")
    staff_member = db.relationship("StaffMember")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pricelist_item_id": self.pricelist_item_id,
            "staff_id": self.staff_id,
            "movement_type": self.movement_type,
            "quantity_changed": self.quantity_changed,
            "reason": self.reason,
            "movement_date": to_utc_z(self.movement_date),
            "created_at": to_utc_z(self.created_at),
        }
