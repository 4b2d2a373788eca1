"""Tests for books, per-book stock rollups and the audit trail."""

import pytest

from bookstock.errors import DuplicateCodeError, InsufficientStockError, NotFoundError, ValidationError
from bookstock.models.registry import LOCATION_KIND_STORE
from bookstock.services import (
    audit_service,
    catalog_service,
    location_service,
    stock_service,
    transfer_service,
)

from conftest import ACTOR


class TestBooks:
    def test_create_and_get(self, db_session, book):
        assert catalog_service.get_book(book.id).title == "Dune"

    def test_blank_title(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_book(title="  ")

    def test_duplicate_isbn(self, db_session, book):
        with pytest.raises(DuplicateCodeError):
            catalog_service.create_book(title="Dune (copy)", isbn=book.isbn)

    def test_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.get_book(99999)


class TestStockSummary:
    def test_split_by_kind(self, db_session, book, warehouse, store, make_location):
        other = make_location()
        stock_service.set_stock(warehouse.id, book.id, 7)
        stock_service.set_stock(other.id, book.id, 3)
        stock_service.set_stock(store.id, book.id, 2)

        summary = catalog_service.book_stock_summary(book.id)
        assert summary == {
            "book_id": book.id,
            "warehouse_quantity": 10,
            "store_quantity": 2,
            "total_quantity": 12,
        }

    def test_trashed_locations_excluded(self, db_session, book, warehouse, store):
        stock_service.set_stock(warehouse.id, book.id, 7)
        stock_service.set_stock(store.id, book.id, 2)
        location_service.soft_delete_location(store.id)

        assert catalog_service.book_stock_summary(book.id)["store_quantity"] == 0

    def test_no_stock(self, db_session, book):
        assert catalog_service.book_stock_summary(book.id)["total_quantity"] == 0


class TestStockPresence:
    def test_counts_live_warehouses(self, db_session, make_book, make_location, warehouse):
        first, second = make_book(), make_book()
        other = make_location()
        idle = make_location(is_active=False)
        store = make_location(LOCATION_KIND_STORE)

        stock_service.set_stock(warehouse.id, first.id, 1)
        stock_service.set_stock(other.id, first.id, 0)
        stock_service.set_stock(idle.id, second.id, 5)
        stock_service.set_stock(store.id, second.id, 5)

        presence = catalog_service.book_stock_presence()
        assert presence["total_warehouses"] == 2
        assert presence["by_book"] == [{"book_id": first.id, "warehouse_count": 2}]


class TestAuditTrail:
    def test_transfer_writes_event(self, db_session, book, warehouse, store):
        stock_service.set_stock(warehouse.id, book.id, 5)
        transfer = transfer_service.transfer_stock(
            book_id=book.id, from_location_id=warehouse.id, to_location_id=store.id,
            quantity=2, actor_id=ACTOR, note="restock",
        )

        events = audit_service.list_audit_events(entity_type="stock_transfer", entity_id=transfer.id)
        assert len(events) == 1
        event = events[0].to_dict()
        assert event["event_type"] == "transfer.created"
        assert event["actor_id"] == ACTOR
        assert event["location_id"] == warehouse.id
        assert event["note"] == "restock"
        assert event["payload"]["quantity"] == 2

    def test_failed_mutation_leaves_no_event(self, db_session, book, warehouse, store):
        with pytest.raises(InsufficientStockError):
            transfer_service.transfer_stock(
                book_id=book.id, from_location_id=warehouse.id, to_location_id=store.id,
                quantity=2, actor_id=ACTOR,
            )
        assert audit_service.list_audit_events(event_type="transfer.created") == []

    def test_filter_by_location(self, db_session, warehouse, store):
        events = audit_service.list_audit_events(location_id=store.id)
        assert [e.event_type for e in events] == ["location.created"]
