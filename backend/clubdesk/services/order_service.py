"""
Order processor - multi-line orders priced and stocked in one transaction.

WHY: An order, its stock deductions and their movement rows must land
together or not at all. Cancelling or deleting an order gives the stock
back through the same ledger, so the movement history always explains
current_stock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Order, OrderItem
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_RETURN_ON_CANCEL, MOVEMENT_RETURN_ON_DELETE
from ..models.orders import (
    ORDER_STATUSES,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_CANCELLED,
    STOCK_RELEASED_STATUSES,
)
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    MAX_AMOUNT_CENTS,
    require_positive_int,
)
from clubdesk.time_utils import utcnow
from .catalog_service import price_and_stock, ItemNotFoundError
from .stock_ledger_service import apply_movement, InsufficientStockError
from .concurrency import lock_for_update, run_in_transaction
from .lookup_service import ReferenceLookup, get_reference_lookup
from .pagination import paginate


class OrderNotFoundError(NotFoundError):
    """Order does not exist."""


class ItemUnavailableError(ConflictError):
    """Pricelist item exists but is switched off for sale."""


class OrderStatusError(ConflictError):
    """Requested status change is not allowed from the current status."""


class OrderReferenceNotFoundError(NotFoundError):
    """Client, staff member, table or booking referenced by the order does not exist."""


@dataclass(frozen=True)
class OrderLineRequest:
    pricelist_item_id: int
    quantity: int
    notes: str | None = None


def is_valid_order_status(status: str | None) -> bool:
    return status in ORDER_STATUSES


def compute_final_amount(total_amount_cents: int, discount_amount_cents: int | None) -> int:
    """Total minus discount, floored at zero."""
    return max(0, total_amount_cents - (discount_amount_cents or 0))


def _load_order(order_id: int, *, lock: bool = False, hydrate: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if hydrate:
        query = query.options(
            joinedload(Order.client),
            joinedload(Order.staff_member),
            joinedload(Order.game_table),
        )
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise OrderNotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def _validate_references(lookup: ReferenceLookup, *, staff_id, client_id, table_id, booking_id) -> None:
    checks = (
        ("staff_id", staff_id, lookup.staff_exists, "Staff member"),
        ("client_id", client_id, lookup.client_exists, "Client"),
        ("table_id", table_id, lookup.table_exists, "Table"),
        ("booking_id", booking_id, lookup.booking_exists, "Booking"),
    )
    for field, value, exists, label in checks:
        if value is not None and not exists(value):
            raise OrderReferenceNotFoundError(f"{label} {value} not found", details={field: value})


def _return_stock(order: Order, *, movement_type: str, reason: str) -> None:
    """Give back every tracked line of the order, one movement per line."""
    for line in order.items:
        snapshot = price_and_stock(line.pricelist_item_id, lock=True)
        if not snapshot.tracks_stock:
            continue
        apply_movement(
            item_id=line.pricelist_item_id,
            quantity_delta=line.quantity,
            movement_type=movement_type,
            staff_id=order.staff_id,
            reason=reason,
        )


def create_order(
    *,
    staff_id: int,
    items: list[OrderLineRequest],
    client_id: int | None = None,
    booking_id: int | None = None,
    table_id: int | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
    discount_amount_cents: int | None = None,
    lookup: ReferenceLookup | None = None,
) -> Order:
    """
    Price, stock-check and persist an order with its lines.

    All-or-nothing: one failing line (missing item, insufficient stock)
    rolls back every deduction and movement made for earlier lines.
    """
    # Validation happens before any write
    if not items:
        raise ValidationError("Order must contain at least one item")
    for line in items:
        require_positive_int(line.pricelist_item_id, "pricelist_item_id")
        require_positive_int(line.quantity, f"quantity for item ID {line.pricelist_item_id}")

    require_positive_int(staff_id, "staff_id")

    status = status or ORDER_STATUS_PENDING
    if not is_valid_order_status(status):
        raise ValidationError(f"Invalid order status: {status}", details={"allowed": list(ORDER_STATUSES)})
    if status in STOCK_RELEASED_STATUSES:
        raise ValidationError(f"Orders cannot be created with status {status}")

    if discount_amount_cents is not None:
        if discount_amount_cents < 0:
            raise ValidationError("discount_amount_cents must be >= 0")
        if discount_amount_cents > MAX_AMOUNT_CENTS:
            raise ValidationError(f"discount_amount_cents cannot exceed {MAX_AMOUNT_CENTS}")

    lookup = lookup or get_reference_lookup()
    _validate_references(
        lookup,
        staff_id=staff_id,
        client_id=client_id,
        table_id=table_id,
        booking_id=booking_id,
    )

    def _op():
        total_amount = 0
        lines_to_create: list[OrderItem] = []

        for line in items:
            snapshot = price_and_stock(line.pricelist_item_id, lock=True)
            if not snapshot.is_available:
                raise ItemUnavailableError(
                    f"Pricelist item {snapshot.name} (ID: {line.pricelist_item_id}) is not available",
                    details={"item_id": line.pricelist_item_id},
                )

            line_total = snapshot.price_cents * line.quantity
            total_amount += line_total
            if total_amount > MAX_AMOUNT_CENTS:
                raise ValidationError(
                    f"Order total cannot exceed {MAX_AMOUNT_CENTS}",
                    details={"item_id": line.pricelist_item_id, "total_amount_cents": total_amount},
                )

            if snapshot.tracks_stock:
                available = snapshot.current_stock or 0
                if line.quantity > available:
                    raise InsufficientStockError(
                        item_id=line.pricelist_item_id,
                        item_name=snapshot.name,
                        requested=line.quantity,
                        available=available,
                    )
                apply_movement(
                    item_id=line.pricelist_item_id,
                    quantity_delta=-line.quantity,
                    movement_type=MOVEMENT_SALE,
                    staff_id=staff_id,
                    reason="Order creation",
                )

            lines_to_create.append(OrderItem(
                pricelist_item_id=line.pricelist_item_id,
                quantity=line.quantity,
                unit_price_cents=snapshot.price_cents,
                total_price_cents=line_total,
                notes=line.notes,
            ))

        now = utcnow()
        order = Order(
            client_id=client_id,
            booking_id=booking_id,
            staff_id=staff_id,
            table_id=table_id,
            status=status,
            total_amount_cents=total_amount,
            discount_amount_cents=discount_amount_cents or 0,
            final_amount_cents=compute_final_amount(total_amount, discount_amount_cents),
            payment_method=payment_method,
            notes=notes,
            order_time=now,
            created_at=now,
            updated_at=now,
        )
        db.session.add(order)
        db.session.flush()

        for order_item in lines_to_create:
            order_item.order_id = order.id
            order.items.append(order_item)
        db.session.flush()
        return order.id

    order_id = run_in_transaction(_op)
    return get_order(order_id)


def get_order(order_id: int) -> Order:
    """Order with its lines and client/staff/table loaded."""
    return _load_order(order_id, hydrate=True)


def list_orders(
    *,
    client_id: int | None = None,
    staff_id: int | None = None,
    table_id: int | None = None,
    status: str | None = None,
    date: str | None = None,
    page: int | None = None,
    page_size: int | None = None,
):
    """
    Newest first. date is a YYYY-MM-DD day on order_time.

    Returns (orders, total, page, page_size).
    """
    q = db.session.query(Order).options(
        joinedload(Order.client),
        joinedload(Order.staff_member),
        joinedload(Order.game_table),
    )
    if client_id is not None:
        q = q.filter(Order.client_id == client_id)
    if staff_id is not None:
        q = q.filter(Order.staff_id == staff_id)
    if table_id is not None:
        q = q.filter(Order.table_id == table_id)
    if status:
        q = q.filter(Order.status == status)
    if date:
        try:
            day = datetime.strptime(date, "%Y-%m-%d")
        except ValueError:
            raise ValidationError("date must be in YYYY-MM-DD format")
        q = q.filter(Order.order_time >= day, Order.order_time < day + timedelta(days=1))

    q = q.order_by(Order.order_time.desc(), Order.id.desc())
    return paginate(q, page, page_size)


def update_order_status(order_id: int, status: str) -> Order:
    """
    Move an order to a new status.

    Entering 'cancelled' returns every tracked line to stock. 'cancelled'
    and 'refunded' are final: their stock is already settled, so leaving
    them is refused rather than risking a second credit.
    """
    if not is_valid_order_status(status):
        raise ValidationError(f"Invalid order status: {status}", details={"allowed": list(ORDER_STATUSES)})

    def _op():
        order = _load_order(order_id, lock=True)

        if order.status in STOCK_RELEASED_STATUSES and status != order.status:
            raise OrderStatusError(
                f"Cannot change status of a {order.status} order",
                details={"order_id": order_id, "current_status": order.status, "requested_status": status},
            )

        if status == ORDER_STATUS_CANCELLED and order.status not in STOCK_RELEASED_STATUSES:
            _return_stock(
                order,
                movement_type=MOVEMENT_RETURN_ON_CANCEL,
                reason=f"Order {order.id} cancelled",
            )

        order.status = status
        order.updated_at = utcnow()
        db.session.flush()
        return order.id

    run_in_transaction(_op)
    return get_order(order_id)


def delete_order(order_id: int) -> None:
    """
    Delete an order and its lines, returning stock first unless it was
    already returned by a cancellation (or the order was refunded).
    """
    def _op():
        order = _load_order(order_id, lock=True)

        if order.status not in STOCK_RELEASED_STATUSES:
            _return_stock(
                order,
                movement_type=MOVEMENT_RETURN_ON_DELETE,
                reason=f"Order {order.id} deleted",
            )

        # Lines are removed before the header through the delete-orphan cascade
        db.session.delete(order)
        db.session.flush()

    run_in_transaction(_op)


__all__ = [
    "OrderLineRequest",
    "OrderNotFoundError",
    "OrderReferenceNotFoundError",
    "OrderStatusError",
    "ItemUnavailableError",
    "ItemNotFoundError",
    "InsufficientStockError",
    "create_order",
    "get_order",
    "list_orders",
    "update_order_status",
    "delete_order",
    "compute_final_amount",
    "is_valid_order_status",
]
