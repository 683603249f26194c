from __future__ import annotations

from ..extensions import db
from clubdesk.time_utils import to_utc_z

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PREPARING = "preparing"
ORDER_STATUS_READY = "ready"
ORDER_STATUS_SERVED = "served"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_REFUNDED = "refunded"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PREPARING,
    ORDER_STATUS_READY,
    ORDER_STATUS_SERVED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_PAID,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_REFUNDED,
)

# Stock for these orders has already been given back (or must never be)
STOCK_RELEASED_STATUSES = (ORDER_STATUS_CANCELLED, ORDER_STATUS_REFUNDED)


class Order(db.Model):
    """
    Bar/kitchen order.

    Money is stored in cents:
    - total_amount_cents == SUM(order_items.total_price_cents)
    - final_amount_cents == max(0, total_amount_cents - discount_amount_cents)
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_time", "status", "order_time"),
        db.CheckConstraint("final_amount_cents >= 0", name="ck_orders_final_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff_members.id"), nullable=False, index=True)
    table_id = db.Column(db.Integer, db.ForeignKey("game_tables.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    order_time = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    client = db.relationship("Client")
    booking = db.relationship("Booking")
    staff_member = db.relationship("StaffMember")
    game_table = db.relationship("GameTable")
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status!r} final={self.final_amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "booking_id": self.booking_id,
            "staff_id": self.staff_id,
            "table_id": self.table_id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "final_amount_cents": self.final_amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "order_time": to_utc_z(self.order_time),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Order line; unit_price_cents is the price snapshot taken when the order was placed."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    pricelist_item_id = db.Column(db.Integer, db.ForeignKey("pricelist_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")
    pricelist_item = db.relationship("PricelistItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "pricelist_item_id": self.pricelist_item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
