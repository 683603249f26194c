# Overview: Flask API routes for bar/kitchen orders; parses input and returns JSON responses.

# backend/clubdesk/routes/orders.py
"""
Order routes.

Money is integer cents in and out. Stock deductions and returns happen in
the service layer; these handlers only translate JSON and error types.
"""

from flask import Blueprint, request, current_app

from ..models import Order, OrderItem
from ..services import order_service
from ..services.order_service import OrderLineRequest
from ..services.projection_service import order_view, page_view
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    ConflictError,
    enforce_rules_money,
    enforce_rules_order_line,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "client_id",
        "booking_id",
        "staff_id",
        "table_id",
        "status",
        "payment_method",
        "notes",
        "discount_amount_cents",
    },
    required_on_create={"staff_id"},
)

ORDER_LINE_POLICY = ModelValidationPolicy(
    writable_fields={"pricelist_item_id", "quantity", "notes"},
    required_on_create={"pricelist_item_id", "quantity"},
)


def _error(e, status: int):
    return {"error": str(e), "details": getattr(e, "details", {})}, status


def _parse_lines(raw_items) -> list[OrderLineRequest]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for raw in raw_items:
        patch = validate_payload(model=OrderItem, payload=raw, policy=ORDER_LINE_POLICY, partial=False)
        enforce_rules_order_line(patch)
        lines.append(OrderLineRequest(
            pricelist_item_id=patch["pricelist_item_id"],
            quantity=patch["quantity"],
            notes=patch.get("notes"),
        ))
    return lines


def _int_arg(name: str):
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@orders_bp.post("")
def create_order_route():
    """Create an order with its lines; deducts tracked stock."""
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        header = {k: v for k, v in payload.items() if k != "items"}
        patch = validate_payload(model=Order, payload=header, policy=ORDER_CREATE_POLICY, partial=False)
        enforce_rules_money(patch, "discount_amount_cents")
        lines = _parse_lines(payload.get("items"))

        order = order_service.create_order(items=lines, **patch)
        return {"order": order_view(order)}, 201

    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return {"error": "Internal server error"}, 500


@orders_bp.get("")
def list_orders_route():
    """Paginated order list, newest first."""
    try:
        rows, total, page, page_size = order_service.list_orders(
            client_id=_int_arg("client_id"),
            staff_id=_int_arg("staff_id"),
            table_id=_int_arg("table_id"),
            status=request.args.get("status") or None,
            date=request.args.get("date") or None,
            page=_int_arg("page"),
            page_size=_int_arg("page_size"),
        )
        return page_view(rows, total, page, page_size, view=lambda o: order_view(o, include_items=False)), 200

    except ValidationError as e:
        return _error(e, 400)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return {"error": "Internal server error"}, 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return {"order": order_view(order)}, 200
    except NotFoundError as e:
        return _error(e, 404)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return {"error": "Internal server error"}, 500


@orders_bp.patch("/<int:order_id>/status")
def update_order_status_route(order_id: int):
    """
    Change order status.

    Moving to 'cancelled' returns tracked stock; 'cancelled' and
    'refunded' orders cannot be moved elsewhere.
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status") if isinstance(payload, dict) else None
    if not status or not isinstance(status, str):
        return {"error": "status required"}, 400

    try:
        order = order_service.update_order_status(order_id, status.strip())
        return {"order": order_view(order)}, 200

    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return {"error": "Internal server error"}, 500


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
        return {"message": f"Order {order_id} deleted"}, 200

    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return {"error": "Internal server error"}, 500
