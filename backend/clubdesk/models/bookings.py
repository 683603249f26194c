from __future__ import annotations

from ..extensions import db
from clubdesk.time_utils import to_utc_z

BOOKING_STATUS_PENDING = "pending"
BOOKING_STATUS_CONFIRMED = "confirmed"
BOOKING_STATUS_CHECKED_IN = "checked-in"
BOOKING_STATUS_COMPLETED = "completed"
BOOKING_STATUS_CANCELLED = "cancelled"
BOOKING_STATUS_NO_SHOW = "no-show"

BOOKING_STATUSES = (
    BOOKING_STATUS_PENDING,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_CHECKED_IN,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CANCELLED,
    BOOKING_STATUS_NO_SHOW,
)

# Statuses that hold the table; only these take part in overlap detection
OCCUPYING_STATUSES = (BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_CHECKED_IN)

# Once here, a booking is read-only
CLOSED_STATUSES = (BOOKING_STATUS_COMPLETED, BOOKING_STATUS_CANCELLED)


class GameTable(db.Model):
    """Physical station rented by time slot."""
    __tablename__ = "game_tables"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="available")
    capacity = db.Column(db.Integer, nullable=True)
    hourly_rate_cents = db.Column(db.Integer, nullable=True)

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
            "status": self.status,
            "capacity": self.capacity,
            "hourly_rate_cents": self.hourly_rate_cents,
        }


class Booking(db.Model):
    """
    Reservation of a game table over the half-open interval [start_time, end_time).

    INVARIANT: for one table, no two bookings in OCCUPYING_STATUSES overlap.
    Enforced by services.booking_service under a table write lock.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        db.Index("ix_bookings_table_window", "table_id", "start_time", "end_time"),
        db.Index("ix_bookings_status_start", "status", "start_time"),
        db.CheckConstraint("end_time > start_time", name="ck_bookings_end_after_start"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    table_id = db.Column(db.Integer, db.ForeignKey("game_tables.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff_members.id"), nullable=True, index=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=False)

    number_of_guests = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=BOOKING_STATUS_CONFIRMED)
    notes = db.Column(db.String(500), nullable=True)
    total_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    client = db.relationship("Client")
    game_table = db.relationship("GameTable", backref=db.backref("bookings", lazy=True))
    staff_member = db.relationship("StaffMember")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Booking id={self.id} table_id={self.table_id} {self.start_time}..{self.end_time} {self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "table_id": self.table_id,
            "staff_id": self.staff_id,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "number_of_guests": self.number_of_guests,
            "status": self.status,
            "notes": self.notes,
            "total_price_cents": self.total_price_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
