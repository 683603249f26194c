# backend/clubdesk/routes/inventory.py
"""
Stock ledger routes.

- POST /api/inventory-movements records a purchase or manual adjustment.
  quantity is a positive magnitude; adjustment_out removes stock.
- GET /api/inventory-movements lists the movement trail, newest first.
- GET /api/inventory/items/<id> returns the current price/stock snapshot.
- POST /api/inventory/items adds a catalog item; PATCH /api/inventory/items/<id>
  edits it and switches stock tracking on or off.
"""
from flask import Blueprint, request, current_app

from ..models import PricelistItem
from ..services import catalog_service, stock_ledger_service
from ..services.catalog_service import ITEM_POLICY, price_and_stock
from ..services.projection_service import page_view
from ..validation import ValidationError, NotFoundError, ConflictError, validate_payload


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")

MOVEMENT_FIELDS = {"pricelist_item_id", "movement_type", "quantity", "staff_id", "reason"}


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


@inventory_bp.post("/inventory-movements")
def record_movement_route():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    unknown = sorted(set(payload) - MOVEMENT_FIELDS)
    if unknown:
        return {"error": f"Field not allowed: {unknown[0]}"}, 400

    item_id = payload.get("pricelist_item_id")
    movement_type = payload.get("movement_type")
    quantity = payload.get("quantity")
    if item_id is None or not movement_type or quantity is None:
        return {"error": "pricelist_item_id, movement_type and quantity required"}, 400

    try:
        movement = stock_ledger_service.record_movement(
            item_id=item_id,
            movement_type=movement_type,
            quantity=quantity,
            staff_id=payload.get("staff_id"),
            reason=payload.get("reason"),
        )
        snapshot = price_and_stock(item_id)
        return {"movement": movement.to_dict(), "current_stock": snapshot.current_stock}, 201

    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to record inventory movement")
        return {"error": "Internal server error"}, 500


@inventory_bp.get("/inventory-movements")
def list_movements_route():
    try:
        rows, total, page, page_size = stock_ledger_service.list_movements(
            item_id=_int_arg("pricelist_item_id"),
            staff_id=_int_arg("staff_id"),
            movement_type=request.args.get("movement_type") or None,
            page=_int_arg("page"),
            page_size=_int_arg("page_size"),
        )
        return page_view(rows, total, page, page_size, view=lambda m: m.to_dict()), 200
    except ValidationError as e:
        return _error(e, 400)
    except Exception:
        current_app.logger.exception("Failed to list inventory movements")
        return {"error": "Internal server error"}, 500


@inventory_bp.get("/inventory/items/<int:item_id>")
def item_stock_route(item_id: int):
    try:
        snapshot = price_and_stock(item_id)
    except NotFoundError as e:
        return _error(e, 404)
    except Exception:
        current_app.logger.exception("Failed to load item stock")
        return {"error": "Internal server error"}, 500

    return {
        "item_id": item_id,
        "name": snapshot.name,
        "price_cents": snapshot.price_cents,
        "tracks_stock": snapshot.tracks_stock,
        "is_available": snapshot.is_available,
        "current_stock": snapshot.current_stock,
    }, 200


@inventory_bp.post("/inventory/items")
def create_item_route():
    """Add a catalog item. tracks_stock with current_stock sets the opening count."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=PricelistItem, payload=payload, policy=ITEM_POLICY, partial=False)
        item = catalog_service.create_item(**patch)
        return {"item": item.to_dict()}, 201

    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to create pricelist item")
        return {"error": "Internal server error"}, 500


@inventory_bp.patch("/inventory/items/<int:item_id>")
def update_item_route(item_id: int):
    """Partial update. Stock of a tracked item is changed with inventory movements, not here."""
    payload = request.get_json(silent=True) or {}
    try:
        item = catalog_service.update_item(item_id, payload)
        return {"item": item.to_dict()}, 200

    except ValidationError as e:
        return _error(e, 400)
    except NotFoundError as e:
        return _error(e, 404)
    except ConflictError as e:
        return _error(e, 409)
    except Exception:
        current_app.logger.exception("Failed to update pricelist item")
        return {"error": "Internal server error"}, 500
