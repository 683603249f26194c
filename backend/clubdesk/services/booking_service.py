"""
Booking resolver and lifecycle.

WHY: A table can hold only one live reservation at a time. The overlap
check and the write must see the same state, so both run in a single
transaction that holds the write lock on the table row.

Intervals are half-open: [start_time, end_time). A booking that ends at
10:00 does not collide with one that starts at 10:00.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Booking, GameTable, Order
from ..models.bookings import (
    BOOKING_STATUSES,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_CHECKED_IN,
    BOOKING_STATUS_PENDING,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CANCELLED,
    OCCUPYING_STATUSES,
    CLOSED_STATUSES,
)
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    ReferentialConflictError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_booking,
)
from clubdesk.time_utils import utcnow, normalize_datetime
from .concurrency import lock_for_update, run_in_transaction
from .lookup_service import ReferenceLookup, get_reference_lookup
from .pagination import paginate


BOOKING_POLICY = ModelValidationPolicy(
    writable_fields={
        "client_id",
        "table_id",
        "staff_id",
        "start_time",
        "end_time",
        "number_of_guests",
        "status",
        "notes",
    },
    required_on_create={"table_id", "start_time", "end_time"},
)


class BookingNotFoundError(NotFoundError):
    """Booking does not exist."""


class TableNotFoundError(NotFoundError):
    """Game table does not exist."""


class BookingReferenceNotFoundError(NotFoundError):
    """Client or staff member referenced by the booking does not exist."""


class ResourceNotAvailableError(ConflictError):
    """Another occupying booking overlaps the requested window on the same table."""


class BookingStatusError(ConflictError):
    """Status change not allowed from the booking's current status."""


def _window_rules():
    cfg = current_app.config
    return (
        timedelta(minutes=cfg.get("BOOKING_MIN_MINUTES", 15)),
        timedelta(hours=cfg.get("BOOKING_MAX_HOURS", 12)),
        timedelta(minutes=cfg.get("BOOKING_CLOCK_SKEW_MINUTES", 5)),
    )


def _coerce_time(value, field: str) -> datetime:
    try:
        return normalize_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def validate_window(start: datetime, end: datetime, *, check_past: bool) -> None:
    """
    end after start, duration within the configured bounds and, when
    check_past is set, start no earlier than now minus the clock skew.
    """
    min_duration, max_duration, skew = _window_rules()

    if end <= start:
        raise ValidationError("end_time must be after start_time")

    duration = end - start
    if duration < min_duration:
        raise ValidationError(
            f"Booking must last at least {int(min_duration.total_seconds() // 60)} minutes"
        )
    if duration > max_duration:
        raise ValidationError(
            f"Booking cannot last more than {int(max_duration.total_seconds() // 3600)} hours"
        )

    if check_past and start < utcnow() - skew:
        raise ValidationError("start_time cannot be in the past")


def _validate_status(status: str | None) -> None:
    if status is not None and status not in BOOKING_STATUSES:
        raise ValidationError(
            f"Invalid booking status: {status}",
            details={"allowed": list(BOOKING_STATUSES)},
        )


def _validate_references(lookup: ReferenceLookup, *, client_id=None, staff_id=None) -> None:
    if client_id is not None and not lookup.client_exists(client_id):
        raise BookingReferenceNotFoundError(f"Client {client_id} not found", details={"client_id": client_id})
    if staff_id is not None and not lookup.staff_exists(staff_id):
        raise BookingReferenceNotFoundError(f"Staff member {staff_id} not found", details={"staff_id": staff_id})


def _lock_table(table_id: int) -> GameTable:
    table = lock_for_update(db.session.query(GameTable).filter_by(id=table_id)).first()
    if table is None:
        raise TableNotFoundError(f"Table {table_id} not found", details={"table_id": table_id})
    return table


def _load_booking(booking_id: int, *, lock: bool = False, hydrate: bool = False) -> Booking:
    query = db.session.query(Booking).filter_by(id=booking_id)
    if hydrate:
        query = query.options(
            joinedload(Booking.client),
            joinedload(Booking.game_table),
            joinedload(Booking.staff_member),
        )
    if lock:
        query = lock_for_update(query)
    booking = query.first()
    if booking is None:
        raise BookingNotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
    return booking


def compute_total_price(table: GameTable, start: datetime, end: datetime) -> int | None:
    """Hourly rate pro-rated to the booked duration, rounded to the cent."""
    if table.hourly_rate_cents is None:
        return None
    seconds = int((end - start).total_seconds())
    return round(table.hourly_rate_cents * seconds / 3600)


def check_availability(
    table_id: int,
    start_time,
    end_time,
    exclude_booking_id: int | None = None,
    *,
    lookup: ReferenceLookup | None = None,
) -> bool:
    """
    True when no occupying booking on the table overlaps [start_time, end_time).

    Read-only; calling it twice with no write in between gives the same answer.
    Raises ValidationError for an empty or inverted window and
    TableNotFoundError for an unknown table.
    """
    start = _coerce_time(start_time, "start_time")
    end = _coerce_time(end_time, "end_time")
    if end <= start:
        raise ValidationError("end_time must be after start_time")

    lookup = lookup or get_reference_lookup()
    if not lookup.table_exists(table_id):
        raise TableNotFoundError(f"Table {table_id} not found", details={"table_id": table_id})

    return _is_free(table_id, start, end, exclude_booking_id)


def _is_free(table_id: int, start: datetime, end: datetime, exclude_booking_id: int | None) -> bool:
    q = db.session.query(Booking.id).filter(
        Booking.table_id == table_id,
        Booking.status.in_(OCCUPYING_STATUSES),
        Booking.start_time < end,
        Booking.end_time > start,
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    return q.first() is None


def _ensure_available(table_id: int, start: datetime, end: datetime, exclude_booking_id: int | None = None) -> None:
    # caller holds the table row lock, so the table exists
    if not _is_free(table_id, start, end, exclude_booking_id):
        raise ResourceNotAvailableError(
            "Table is not available for the selected time",
            details={
                "table_id": table_id,
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
            },
        )


def create_booking(
    *,
    table_id: int,
    start_time,
    end_time,
    client_id: int | None = None,
    staff_id: int | None = None,
    number_of_guests: int | None = None,
    status: str | None = None,
    notes: str | None = None,
    lookup: ReferenceLookup | None = None,
) -> Booking:
    start = _coerce_time(start_time, "start_time")
    end = _coerce_time(end_time, "end_time")
    validate_window(start, end, check_past=True)

    status = status or BOOKING_STATUS_CONFIRMED
    _validate_status(status)
    enforce_rules_booking({"number_of_guests": number_of_guests})

    lookup = lookup or get_reference_lookup()
    _validate_references(lookup, client_id=client_id, staff_id=staff_id)

    def _op():
        table = _lock_table(table_id)
        _ensure_available(table_id, start, end)

        now = utcnow()
        booking = Booking(
            table_id=table_id,
            client_id=client_id,
            staff_id=staff_id,
            start_time=start,
            end_time=end,
            number_of_guests=number_of_guests,
            status=status,
            notes=notes,
            total_price_cents=compute_total_price(table, start, end),
            created_at=now,
            updated_at=now,
        )
        db.session.add(booking)
        db.session.flush()
        return booking.id

    booking_id = run_in_transaction(_op)
    return get_booking(booking_id)


def update_booking(booking_id: int, patch: dict, *, lookup: ReferenceLookup | None = None) -> Booking:
    """
    Apply only the fields present in patch.

    Closed bookings (completed, cancelled) are read-only. Availability is
    re-checked when the table or window changes, or when the status moves
    into the occupying set.
    """
    cleaned = validate_payload(model=Booking, payload=patch, policy=BOOKING_POLICY, partial=True)
    if not cleaned:
        raise ValidationError("No fields to update")

    _validate_status(cleaned.get("status"))
    enforce_rules_booking(cleaned)

    lookup = lookup or get_reference_lookup()
    _validate_references(lookup, client_id=cleaned.get("client_id"), staff_id=cleaned.get("staff_id"))

    def _op():
        booking = _load_booking(booking_id, lock=True)
        if booking.status in CLOSED_STATUSES:
            raise BookingStatusError(
                f"Cannot modify a {booking.status} booking",
                details={"booking_id": booking_id, "current_status": booking.status},
            )

        table_id = cleaned.get("table_id", booking.table_id)
        table = _lock_table(table_id)

        start = normalize_datetime(cleaned.get("start_time", booking.start_time))
        end = normalize_datetime(cleaned.get("end_time", booking.end_time))
        times_changed = "start_time" in cleaned or "end_time" in cleaned
        start_moved = "start_time" in cleaned and start != normalize_datetime(booking.start_time)
        if times_changed:
            validate_window(start, end, check_past=start_moved)

        new_status = cleaned.get("status", booking.status)
        becomes_occupying = new_status in OCCUPYING_STATUSES and booking.status not in OCCUPYING_STATUSES
        window_changed = times_changed or table_id != booking.table_id
        if new_status in OCCUPYING_STATUSES and (window_changed or becomes_occupying):
            _ensure_available(table_id, start, end, exclude_booking_id=booking_id)

        for key, value in cleaned.items():
            setattr(booking, key, value)
        booking.start_time = start
        booking.end_time = end
        if window_changed:
            booking.total_price_cents = compute_total_price(table, start, end)
        booking.updated_at = utcnow()
        db.session.flush()
        return booking.id

    run_in_transaction(_op)
    return get_booking(booking_id)


def _transition(booking_id: int, target: str, allowed_from: tuple[str, ...]) -> Booking:
    """Move to target from one of allowed_from; re-applying the current status is a no-op."""
    def _op():
        booking = _load_booking(booking_id, lock=True)
        if booking.status == target:
            return booking.id
        if booking.status not in allowed_from:
            raise BookingStatusError(
                f"Cannot change booking status from {booking.status} to {target}",
                details={"booking_id": booking_id, "current_status": booking.status, "requested_status": target},
            )
        if target in OCCUPYING_STATUSES and booking.status not in OCCUPYING_STATUSES:
            _lock_table(booking.table_id)
            _ensure_available(booking.table_id, booking.start_time, booking.end_time, exclude_booking_id=booking_id)

        booking.status = target
        booking.updated_at = utcnow()
        db.session.flush()
        return booking.id

    run_in_transaction(_op)
    return get_booking(booking_id)


_OPEN_STATUSES = tuple(s for s in BOOKING_STATUSES if s not in CLOSED_STATUSES)


def cancel_booking(booking_id: int) -> Booking:
    return _transition(booking_id, BOOKING_STATUS_CANCELLED, _OPEN_STATUSES)


def complete_booking(booking_id: int) -> Booking:
    return _transition(booking_id, BOOKING_STATUS_COMPLETED, _OPEN_STATUSES)


def check_in_booking(booking_id: int) -> Booking:
    return _transition(booking_id, BOOKING_STATUS_CHECKED_IN, (BOOKING_STATUS_PENDING, BOOKING_STATUS_CONFIRMED))


def get_booking(booking_id: int) -> Booking:
    return _load_booking(booking_id, hydrate=True)


def list_bookings(
    *,
    client_id: int | None = None,
    table_id: int | None = None,
    staff_id: int | None = None,
    status: str | None = None,
    date_from=None,
    date_to=None,
    page: int | None = None,
    page_size: int | None = None,
):
    """
    Newest start first. date_from bounds start_time (>=), date_to bounds end_time (<=).

    Returns (bookings, total, page, page_size).
    """
    q = db.session.query(Booking).options(
        joinedload(Booking.client),
        joinedload(Booking.game_table),
        joinedload(Booking.staff_member),
    )
    if client_id is not None:
        q = q.filter(Booking.client_id == client_id)
    if table_id is not None:
        q = q.filter(Booking.table_id == table_id)
    if staff_id is not None:
        q = q.filter(Booking.staff_id == staff_id)
    if status:
        q = q.filter(Booking.status == status)
    if date_from:
        q = q.filter(Booking.start_time >= _coerce_time(date_from, "date_from"))
    if date_to:
        q = q.filter(Booking.end_time <= _coerce_time(date_to, "date_to"))

    q = q.order_by(Booking.start_time.desc(), Booking.id.desc())
    return paginate(q, page, page_size)


def delete_booking(booking_id: int) -> None:
    def _op():
        booking = _load_booking(booking_id, lock=True)
        referencing = db.session.query(Order.id).filter(Order.booking_id == booking_id).count()
        if referencing:
            raise ReferentialConflictError(
                f"Booking {booking_id} is referenced by {referencing} order(s)",
                details={"booking_id": booking_id, "order_count": referencing},
            )
        db.session.delete(booking)
        db.session.flush()

    run_in_transaction(_op)


__all__ = [
    "BOOKING_POLICY",
    "BookingNotFoundError",
    "BookingReferenceNotFoundError",
    "BookingStatusError",
    "ResourceNotAvailableError",
    "TableNotFoundError",
    "check_availability",
    "validate_window",
    "compute_total_price",
    "create_booking",
    "update_booking",
    "cancel_booking",
    "complete_booking",
    "check_in_booking",
    "get_booking",
    "list_bookings",
    "delete_booking",
]
