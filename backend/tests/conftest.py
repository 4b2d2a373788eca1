"""
Pytest fixtures for bookstock backend tests.

Provides the app on in-memory SQLite, a per-test clean database, the test
client, and factories for books, locations and vendors.
"""

import pytest

from bookstock import create_app
from bookstock.config import TestConfig
from bookstock.extensions import db
from bookstock.models.registry import LOCATION_KIND_STORE, LOCATION_KIND_WAREHOUSE
from bookstock.services import catalog_service, location_service, vendor_service

ACTOR = "staff-1"
APPROVER = "manager-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_book(db_session):
    counter = {"n": 0}

    def _make(title=None, isbn=None):
        counter["n"] += 1
        return catalog_service.create_book(title=title or f"Book {counter['n']}", isbn=isbn)

    return _make


@pytest.fixture(scope='function')
def make_location(db_session):
    counter = {"n": 0}

    def _make(kind=LOCATION_KIND_WAREHOUSE, code=None, name=None, **details):
        counter["n"] += 1
        prefix = "WH" if kind == LOCATION_KIND_WAREHOUSE else "ST"
        return location_service.create_location(
            kind=kind,
            code=code or f"{prefix}-{counter['n']:02d}",
            name=name or f"{kind.title()} {counter['n']}",
            actor_id=ACTOR,
            **details,
        )

    return _make


@pytest.fixture(scope='function')
def make_vendor(db_session):
    counter = {"n": 0}

    def _make(code=None, name=None, **details):
        counter["n"] += 1
        return vendor_service.create_vendor(
            code=code or f"V{counter['n']:03d}",
            name=name or f"Vendor {counter['n']}",
            actor_id=ACTOR,
            **details,
        )

    return _make


@pytest.fixture(scope='function')
def book(make_book):
    return make_book("Dune", isbn="9780441013593")


@pytest.fixture(scope='function')
def warehouse(make_location):
    return make_location(LOCATION_KIND_WAREHOUSE, code="WH-A", name="Warehouse A")


@pytest.fixture(scope='function')
def store(make_location):
    return make_location(LOCATION_KIND_STORE, code="ST-B", name="Store B")


@pytest.fixture(scope='function')
def vendor(make_vendor):
    return make_vendor(code="acme", name="Acme Books")
