"""
Pytest fixtures for venue backend tests.

Provides an in-memory database app, per-test table wipe, test client and
small factories for catalog, staff, tables and bookings.
"""

from datetime import timedelta

import pytest
from clubdesk import create_app
from clubdesk.extensions import db
from clubdesk.models import (
    Client,
    StaffMember,
    GameTable,
    PricelistCategory,
    PricelistItem,
    Booking,
)
from clubdesk.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.config.pop('REFERENCE_LOOKUP', None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def staff(db_session):
    member = StaffMember(full_name="Alex Bartender", position="bartender")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def regular(db_session):
    person = Client(full_name="Sam Regular", phone_number="+15550001111")
    db_session.add(person)
    db_session.commit()
    return person


@pytest.fixture(scope='function')
def category(db_session):
    cat = PricelistCategory(name="Bar")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def make_item(db_session, category):
    """Factory: make_item(name, price_cents, stock=None). stock=None means untracked."""
    def _make(name="Item", price_cents=500, stock=None, threshold=None, is_available=True):
        item = PricelistItem(
            category_id=category.id,
            name=name,
            price_cents=price_cents,
            is_available=is_available,
            tracks_stock=stock is not None,
            initial_stock=stock,
            current_stock=stock,
            low_stock_threshold=threshold,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def table(db_session):
    t = GameTable(name="Billiard 1", capacity=4, hourly_rate_cents=1200)
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def slot():
    """Factory for a future window: slot(hour_offset, minutes) -> (start, end)."""
    base = (utcnow() + timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)

    def _slot(start_offset_minutes=0, duration_minutes=60):
        start = base + timedelta(minutes=start_offset_minutes)
        return start, start + timedelta(minutes=duration_minutes)
    return _slot


@pytest.fixture(scope='function')
def make_booking(db_session, table):
    """Insert a booking row directly, bypassing the service rules."""
    def _make(start, end, status="confirmed", table_id=None):
        booking = Booking(
            table_id=table_id or table.id,
            start_time=start,
            end_time=end,
            status=status,
        )
        db_session.add(booking)
        db_session.commit()
        return booking
    return _make
