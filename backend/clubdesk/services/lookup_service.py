# Overview: Existence checks for entities the core references but does not own.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Booking, Client, GameTable, StaffMember


class ReferenceLookup:
    """
    Lookup seam used by the order and booking services.

    Clients, staff, tables and bookings are managed by other parts of the
    system; the core only needs to know whether a referenced id exists.
    Swap the implementation through the REFERENCE_LOOKUP config key.
    """

    def client_exists(self, client_id: int) -> bool:
        raise NotImplementedError

    def staff_exists(self, staff_id: int) -> bool:
        raise NotImplementedError

    def table_exists(self, table_id: int) -> bool:
        raise NotImplementedError

    def booking_exists(self, booking_id: int) -> bool:
        raise NotImplementedError


class SqlReferenceLookup(ReferenceLookup):
    """Store-backed lookup against the current session."""

    def _exists(self, model, entity_id: int) -> bool:
        return db.session.query(model.id).filter_by(id=entity_id).first() is not None

    def client_exists(self, client_id: int) -> bool:
        return self._exists(Client, client_id)

    def staff_exists(self, staff_id: int) -> bool:
        return self._exists(StaffMember, staff_id)

    def table_exists(self, table_id: int) -> bool:
        return self._exists(GameTable, table_id)

    def booking_exists(self, booking_id: int) -> bool:
        return self._exists(Booking, booking_id)


class InMemoryReferenceLookup(ReferenceLookup):
    """Fixed id sets; useful for wiring tests or read replicas of the directory."""

    def __init__(
        self,
        *,
        clients=(),
        staff=(),
        tables=(),
        bookings=(),
    ):
        self.clients = set(clients)
        self.staff = set(staff)
        self.tables = set(tables)
        self.bookings = set(bookings)

    def client_exists(self, client_id: int) -> bool:
        return client_id in self.clients

    def staff_exists(self, staff_id: int) -> bool:
        return staff_id in self.staff

    def table_exists(self, table_id: int) -> bool:
        return table_id in self.tables

    def booking_exists(self, booking_id: int) -> bool:
        return booking_id in self.bookings


_default_lookup = SqlReferenceLookup()


def get_reference_lookup() -> ReferenceLookup:
    """Lookup configured on the app, falling back to the SQL-backed one."""
    return current_app.config.get("REFERENCE_LOOKUP") or _default_lookup
