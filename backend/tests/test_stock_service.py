# Overview: Pytest coverage for the stock ledger primitives and listings.

import pytest

from bookstock.errors import InsufficientStockError, InvalidQuantityError, NotFoundError, ValidationError
from bookstock.models import StockRecord
from bookstock.models.registry import LOCATION_KIND_STORE, LOCATION_KIND_WAREHOUSE
from bookstock.services import location_service, stock_service

from conftest import ACTOR


class TestSetStock:
    def test_creates_row_with_default_threshold(self, db_session, warehouse, book):
        record = stock_service.set_stock(warehouse.id, book.id, 12, actor_id=ACTOR)
        assert record.quantity == 12
        assert record.low_stock_threshold == 5
        assert record.location_kind == LOCATION_KIND_WAREHOUSE

    def test_upsert_keeps_threshold_when_omitted(self, db_session, warehouse, book):
        stock_service.set_stock(warehouse.id, book.id, 12, threshold=8)
        record = stock_service.set_stock(warehouse.id, book.id, 20)
        assert record.quantity == 20
        assert record.low_stock_threshold == 8
        assert db_session.query(StockRecord).count() == 1

    def test_negative_quantity_rejected(self, db_session, warehouse, book):
        with pytest.raises(InvalidQuantityError):
            stock_service.set_stock(warehouse.id, book.id, -1)
        assert stock_service.get_stock(warehouse.id, book.id) is None

    def test_negative_threshold_rejected(self, db_session, warehouse, book):
        with pytest.raises(InvalidQuantityError):
            stock_service.set_stock(warehouse.id, book.id, 3, threshold=-2)

    def test_zero_is_valid(self, db_session, store, book):
        record = stock_service.set_stock(store.id, book.id, 0)
        assert record.quantity == 0

    def test_unknown_book(self, db_session, warehouse):
        with pytest.raises(NotFoundError):
            stock_service.set_stock(warehouse.id, 999999, 1)

    def test_unknown_location(self, db_session, book):
        with pytest.raises(NotFoundError):
            stock_service.set_stock(999999, book.id, 1)

    def test_trashed_location_rejected(self, db_session, warehouse, book):
        location_service.soft_delete_location(warehouse.id)
        with pytest.raises(ValidationError):
            stock_service.set_stock(warehouse.id, book.id, 4)

    def test_kind_guard(self, db_session, warehouse, book):
        with pytest.raises(NotFoundError):
            stock_service.set_stock(warehouse.id, book.id, 4, kind=LOCATION_KIND_STORE)


class TestCreditDebit:
    def test_credit_creates_lazily(self, db_session, store, book):
        record = stock_service.credit(store, book.id, 7)
        db_session.commit()
        assert record.quantity == 7
        assert record.low_stock_threshold == 5

    def test_debit_insufficient_leaves_row_unchanged(self, db_session, warehouse, book):
        stock_service.set_stock(warehouse.id, book.id, 3)
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.debit(warehouse, book.id, 4)
        db_session.rollback()
        assert exc.value.available == 3
        assert exc.value.requested == 4
        assert stock_service.get_stock(warehouse.id, book.id).quantity == 3

    def test_debit_missing_row_is_insufficient(self, db_session, warehouse, book):
        with pytest.raises(InsufficientStockError):
            stock_service.debit(warehouse, book.id, 1)
        db_session.rollback()
        assert stock_service.get_stock(warehouse.id, book.id) is None

    def test_debit_to_zero(self, db_session, warehouse, book):
        stock_service.set_stock(warehouse.id, book.id, 3)
        record = stock_service.debit(warehouse, book.id, 3)
        db_session.commit()
        assert record.quantity == 0

    def test_negative_delta_rejected(self, db_session, warehouse, book):
        with pytest.raises(InvalidQuantityError):
            stock_service.credit(warehouse, book.id, -1)
        with pytest.raises(InvalidQuantityError):
            stock_service.debit(warehouse, book.id, -1)


class TestListings:
    def test_list_stock_ordered_by_book(self, db_session, warehouse, make_book):
        b2 = make_book("Second")
        b1 = make_book("First")
        stock_service.set_stock(warehouse.id, b1.id, 1)
        stock_service.set_stock(warehouse.id, b2.id, 2)
        rows = stock_service.list_stock(warehouse.id)
        assert [r.book_id for r in rows] == sorted([b1.id, b2.id])

    def test_trashed_location_hidden_from_ledger_but_in_bin(self, db_session, warehouse, store, book):
        stock_service.set_stock(warehouse.id, book.id, 10)
        stock_service.set_stock(store.id, book.id, 4)
        location_service.soft_delete_location(store.id)

        with pytest.raises(NotFoundError):
            stock_service.list_stock(store.id)

        orphaned = stock_service.list_orphaned_stock()
        assert [(r.location_id, r.quantity) for r in orphaned] == [(store.id, 4)]
        assert stock_service.list_orphaned_stock(kind=LOCATION_KIND_WAREHOUSE) == []

    def test_restore_brings_rows_back(self, db_session, store, book):
        stock_service.set_stock(store.id, book.id, 4)
        location_service.soft_delete_location(store.id)
        location_service.restore_location(store.id)
        assert [r.quantity for r in stock_service.list_stock(store.id)] == [4]
        assert stock_service.list_orphaned_stock() == []
