# Overview: Flask API routes for table bookings and availability checks.

# backend/clubdesk/routes/bookings.py
"""
Booking routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Responses emit UTC with a trailing Z.
- Booking windows are half-open [start_time, end_time).
"""

from flask import Blueprint, request, current_app

from ..models import Booking
from ..services import booking_service
from ..services.booking_service import BOOKING_POLICY
from ..services.projection_service import booking_view, page_view
from ..validation import (
    validate_payload,
    ValidationError,
    NotFoundError,
    ConflictError,
    enforce_rules_booking,
)


bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")


def _error(e, status: int):
    return {"error": str(e), "details": getattr(e, "details", {})}, status


def _int_arg(name: str):
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _write_errors(action: str, func, *args, **kwargs):
    """Shared error mapping for the mutating booking endpoints."""
    try:
        return func(*args, **kwargs)
    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to %s", action)
        return {"error": "Internal server error"}, 500


@bookings_bp.post("")
def create_booking_route():
    payload = request.get_json(silent=True) or {}

    def _create():
        patch = validate_payload(model=Booking, payload=payload, policy=BOOKING_POLICY, partial=False)
        enforce_rules_booking(patch)
        booking = booking_service.create_booking(**patch)
        return {"booking": booking_view(booking)}, 201

    return _write_errors("create booking", _create)


@bookings_bp.get("")
def list_bookings_route():
    """Paginated bookings, latest start first."""
    try:
        rows, total, page, page_size = booking_service.list_bookings(
            client_id=_int_arg("client_id"),
            table_id=_int_arg("table_id"),
            staff_id=_int_arg("staff_id"),
            status=request.args.get("status") or None,
            date_from=request.args.get("date_from") or None,
            date_to=request.args.get("date_to") or None,
            page=_int_arg("page"),
            page_size=_int_arg("page_size"),
        )
        return page_view(rows, total, page, page_size, view=booking_view), 200

    except ValidationError as e:
        return _error(e, 400)
    except Exception:
        current_app.logger.exception("Failed to list bookings")
        return {"error": "Internal server error"}, 500


@bookings_bp.get("/availability")
def availability_route():
    """
    Is the table free for [start_time, end_time)?

    Query: table_id, start_time, end_time, exclude_booking_id (optional).
    """
    try:
        table_id = _int_arg("table_id")
        start_time = request.args.get("start_time")
        end_time = request.args.get("end_time")
        if table_id is None or not start_time or not end_time:
            raise ValidationError("table_id, start_time and end_time required")

        available = booking_service.check_availability(
            table_id,
            start_time,
            end_time,
            exclude_booking_id=_int_arg("exclude_booking_id"),
        )
        return {"table_id": table_id, "available": available}, 200

    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except Exception:
        current_app.logger.exception("Failed to check availability")
        return {"error": "Internal server error"}, 500


@bookings_bp.get("/<int:booking_id>")
def get_booking_route(booking_id: int):
    try:
        booking = booking_service.get_booking(booking_id)
        return {"booking": booking_view(booking)}, 200
    except NotFoundError as e:
        return _error(e, 404)
    except Exception:
        current_app.logger.exception("Failed to get booking")
        return {"error": "Internal server error"}, 500


@bookings_bp.put("/<int:booking_id>")
def update_booking_route(booking_id: int):
    """Partial update: only fields present in the body change."""
    payload = request.get_json(silent=True) or {}

    def _update():
        booking = booking_service.update_booking(booking_id, payload)
        return {"booking": booking_view(booking)}, 200

    return _write_errors("update booking", _update)


@bookings_bp.patch("/<int:booking_id>/cancel")
def cancel_booking_route(booking_id: int):
    def _cancel():
        return {"booking": booking_view(booking_service.cancel_booking(booking_id))}, 200

    return _write_errors("cancel booking", _cancel)


@bookings_bp.patch("/<int:booking_id>/complete")
def complete_booking_route(booking_id: int):
    def _complete():
        return {"booking": booking_view(booking_service.complete_booking(booking_id))}, 200

    return _write_errors("complete booking", _complete)


@bookings_bp.patch("/<int:booking_id>/check-in")
def check_in_booking_route(booking_id: int):
    def _check_in():
        return {"booking": booking_view(booking_service.check_in_booking(booking_id))}, 200

    return _write_errors("check in booking", _check_in)


@bookings_bp.delete("/<int:booking_id>")
def delete_booking_route(booking_id: int):
    def _delete():
        booking_service.delete_booking(booking_id)
        return {"message": f"Booking {booking_id} deleted"}, 200

    return _write_errors("delete booking", _delete)
