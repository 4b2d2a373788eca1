"""
Concurrency tests: keyed locks, retry handling and threaded transfers
against a file-backed SQLite database.
"""

import threading
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from bookstock import create_app
from bookstock.config import TestConfig
from bookstock.errors import DuplicateCodeError, InsufficientStockError, ValidationError
from bookstock.extensions import db
from bookstock.models import Location, LowStockAlert, PurchaseOrder, PurchaseRequest, Vendor
from bookstock.services import (
    alert_service,
    catalog_service,
    location_service,
    purchase_order_service,
    purchase_request_service,
    stock_service,
    transfer_service,
    vendor_service,
)
from bookstock.services.concurrency import (
    KeyedLocks,
    order_locks,
    request_locks,
    run_atomically,
    run_with_retry,
    stock_locks,
)

from conftest import ACTOR, APPROVER


def _locked_error():
    return OperationalError("UPDATE stock_records", {}, Exception("database is locked"))


class TestKeyedLocks:
    def test_keys_acquired_sorted_and_deduplicated(self):
        locks = KeyedLocks("test")
        with locks.hold((2, 1), (1, 9), (2, 1)) as ordered:
            assert ordered == [(1, 9), (2, 1)]

    def test_reentrant_in_same_thread(self):
        locks = KeyedLocks("test")
        with locks.hold("a"):
            with locks.hold("a", "b"):
                pass

    def test_blocks_other_threads(self):
        locks = KeyedLocks("test")
        entered = threading.Event()

        def worker():
            with locks.hold("k"):
                entered.set()

        with locks.hold("k"):
            thread = threading.Thread(target=worker)
            thread.start()
            assert not entered.wait(0.1)
        thread.join(timeout=5)
        assert entered.is_set()

    def test_released_after_exception(self):
        locks = KeyedLocks("test")
        with pytest.raises(RuntimeError):
            with locks.hold("k"):
                raise RuntimeError("boom")
        assert len(locks) == 0

        entered = threading.Event()

        def worker():
            with locks.hold("k"):
                entered.set()

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join(timeout=5)
        assert entered.is_set()

    def test_entries_dropped_after_release(self):
        locks = KeyedLocks("test")
        with locks.hold(1, 2, 3):
            assert len(locks) == 3
            with locks.hold(2):
                assert len(locks) == 3
            assert len(locks) == 3
        assert len(locks) == 0

    def test_waiting_thread_gets_lock_and_map_empties(self):
        locks = KeyedLocks("test")
        waiting = threading.Event()
        done = threading.Event()

        def worker():
            waiting.set()
            with locks.hold("k"):
                done.set()

        with locks.hold("k"):
            thread = threading.Thread(target=worker)
            thread.start()
            waiting.wait(1)
        thread.join(timeout=5)
        assert done.is_set()
        assert len(locks) == 0


class TestRetry:
    def test_retries_then_succeeds(self, db_session):
        func = Mock(side_effect=[_locked_error(), StaleDataError("version mismatch"), "ok"])
        assert run_with_retry(func, attempts=3, backoff_base=0) == "ok"
        assert func.call_count == 3

    def test_gives_up_after_attempts(self, db_session):
        func = Mock(side_effect=_locked_error())
        with pytest.raises(OperationalError):
            run_with_retry(func, attempts=2, backoff_base=0)
        assert func.call_count == 2

    def test_domain_errors_not_retried(self, db_session):
        func = Mock(side_effect=ValidationError("bad"))
        with pytest.raises(ValidationError):
            run_with_retry(func, attempts=3, backoff_base=0)
        assert func.call_count == 1

    def test_run_atomically_rolls_back(self, db_session, book, warehouse):
        def _op():
            stock_service.credit(warehouse, book.id, 5)
            raise ValidationError("abort")

        with pytest.raises(ValidationError):
            run_atomically(_op)
        assert stock_service.get_stock(warehouse.id, book.id) is None


@pytest.fixture
def file_app(tmp_path):
    """Separate app on a SQLite file so worker threads share one database."""
    app = create_app(TestConfig, {"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'concurrency.db'}"})
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _seed(app, quantities):
    with app.app_context():
        book = catalog_service.create_book(title="Concurrency")
        ids = []
        for i, quantity in enumerate(quantities):
            wh = location_service.create_location(kind="WAREHOUSE", code=f"CW-{i}", name=f"CW {i}")
            stock_service.set_stock(wh.id, book.id, quantity)
            ids.append(wh.id)
        return book.id, ids


def _run_threads(app, jobs):
    errors = []

    def worker(job):
        with app.app_context():
            try:
                job()
            except Exception as exc:  # collected for assertions
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return errors


class TestConcurrentTransfers:
    def test_opposite_directions_conserve_stock(self, file_app):
        book_id, (a, b) = _seed(file_app, [50, 50])

        def mover(src, dst):
            def _job():
                for _ in range(5):
                    transfer_service.transfer_stock(
                        book_id=book_id, from_location_id=src, to_location_id=dst, quantity=1, actor_id=ACTOR
                    )
            return _job

        jobs = [mover(a, b) if i % 2 == 0 else mover(b, a) for i in range(8)]
        errors = _run_threads(file_app, jobs)
        assert errors == []

        with file_app.app_context():
            qa = stock_service.get_stock(a, book_id).quantity
            qb = stock_service.get_stock(b, book_id).quantity
            assert qa + qb == 100
            assert (qa, qb) == (50, 50)
            assert len(transfer_service.list_transfers(limit=200)) == 40

    def test_no_overdraw_under_contention(self, file_app):
        book_id, (a, b) = _seed(file_app, [5, 0])

        def _job():
            transfer_service.transfer_stock(
                book_id=book_id, from_location_id=a, to_location_id=b, quantity=1, actor_id=ACTOR
            )

        errors = _run_threads(file_app, [_job] * 10)
        assert len(errors) == 5
        assert all(isinstance(e, InsufficientStockError) for e in errors)

        with file_app.app_context():
            assert stock_service.get_stock(a, book_id).quantity == 0
            assert stock_service.get_stock(b, book_id).quantity == 5


def _pause_after_check(barrier):
    """Wrap a code-availability check so both racers pass it before either inserts."""
    seen = threading.local()

    def _wrap(real):
        def _checked(*args, **kwargs):
            real(*args, **kwargs)
            if not getattr(seen, "waited", False):
                seen.waited = True
                barrier.wait()
        return _checked

    return _wrap


class TestConcurrentRegistry:
    def test_same_location_code_one_wins(self, file_app):
        wrap = _pause_after_check(threading.Barrier(2, timeout=5))

        def _job():
            location_service.create_location(kind="WAREHOUSE", code="SAME", name="Same", actor_id=ACTOR)

        real = location_service._ensure_code_free
        with patch.object(location_service, "_ensure_code_free", side_effect=wrap(real)):
            errors = _run_threads(file_app, [_job, _job])

        assert len(errors) == 1
        assert isinstance(errors[0], DuplicateCodeError)
        with file_app.app_context():
            assert db.session.query(Location).filter_by(code="SAME").count() == 1

    def test_same_vendor_code_one_wins(self, file_app):
        wrap = _pause_after_check(threading.Barrier(2, timeout=5))

        def _job():
            vendor_service.create_vendor(code="race", name="Race Books", actor_id=ACTOR)

        real = vendor_service._ensure_code_free
        with patch.object(vendor_service, "_ensure_code_free", side_effect=wrap(real)):
            errors = _run_threads(file_app, [_job, _job])

        assert len(errors) == 1
        assert isinstance(errors[0], DuplicateCodeError)
        with file_app.app_context():
            assert db.session.query(Vendor).filter_by(code="RACE").count() == 1


class TestReceiptsRacingTransfers:
    def test_same_key_conserves_stock_and_alerts(self, file_app):
        """Receipts, transfers and an alert recompute all touching one (warehouse, book) key."""
        with file_app.app_context():
            book = catalog_service.create_book(title="Contended")
            warehouse = location_service.create_location(kind="WAREHOUSE", code="RW", name="Receiving")
            store = location_service.create_location(kind="STORE", code="RS", name="Front")
            vendor = vendor_service.create_vendor(code="rv", name="Race Vendor")
            stock_service.set_stock(warehouse.id, book.id, 3, threshold=5)

            order_ids = []
            for _ in range(4):
                pr = purchase_request_service.create_request(
                    book_id=book.id, warehouse_id=warehouse.id, quantity=2, actor_id=ACTOR,
                    submit_for_approval=True,
                )
                purchase_request_service.review_request(pr.id, action="APPROVE", actor_id=APPROVER)
                order = purchase_order_service.create_order(
                    purchase_request_id=pr.id, vendor_id=vendor.id, actor_id=APPROVER
                )
                order_ids.append(order.id)
            book_id, warehouse_id, store_id = book.id, warehouse.id, store.id

        def receiver(order_id):
            return lambda: purchase_order_service.receive_order(order_id, actor_id=ACTOR)

        def mover():
            transfer_service.transfer_stock(
                book_id=book_id, from_location_id=warehouse_id, to_location_id=store_id,
                quantity=1, actor_id=ACTOR,
            )

        jobs = [receiver(order_id) for order_id in order_ids] + [mover] * 3 + [alert_service.recompute_all_alerts]
        errors = _run_threads(file_app, jobs)
        assert errors == []

        with file_app.app_context():
            assert stock_service.get_stock(warehouse_id, book_id).quantity == 8
            assert stock_service.get_stock(store_id, book_id).quantity == 3

            open_alerts = db.session.query(LowStockAlert).filter_by(status="OPEN").all()
            assert [(a.location_id, a.book_id) for a in open_alerts] == [(store_id, book_id)]
            warehouse_alerts = db.session.query(LowStockAlert).filter_by(location_id=warehouse_id).all()
            assert warehouse_alerts
            assert {a.status for a in warehouse_alerts} == {"RESOLVED"}

            assert {o.status for o in db.session.query(PurchaseOrder).all()} == {"RECEIVED"}
            assert {r.status for r in db.session.query(PurchaseRequest).all()} == {"COMPLETED"}

        assert (len(stock_locks), len(order_locks), len(request_locks)) == (0, 0, 0)
