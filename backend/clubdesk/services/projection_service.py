# Overview: Read-side views that decorate orders and bookings with display names for API responses.

from __future__ import annotations

from ..models import Booking, Order, PricelistItem


def _name(entity) -> str | None:
    if entity is None:
        return None
    return getattr(entity, "full_name", None) or getattr(entity, "name", None)


def order_view(order: Order, *, include_items: bool = True) -> dict:
    """Order dict plus client/staff/table names and, optionally, its lines with item names."""
    data = order.to_dict()
    data["client_name"] = _name(order.client)
    data["staff_name"] = _name(order.staff_member)
    data["table_name"] = _name(order.game_table)

    if include_items:
        data["items"] = [order_item_view(line) for line in order.items]
    return data


def order_item_view(line) -> dict:
    data = line.to_dict()
    item: PricelistItem | None = line.pricelist_item
    data["item_name"] = item.name if item is not None else None
    return data


def booking_view(booking: Booking) -> dict:
    data = booking.to_dict()
    data["client_name"] = _name(booking.client)
    data["table_name"] = _name(booking.game_table)
    data["staff_name"] = _name(booking.staff_member)
    return data


def page_view(rows, total: int, page: int, page_size: int, *, view) -> dict:
    """List envelope shared by every paginated endpoint."""
    return {
        "data": [view(row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
