# Overview: Stock ledger: per-(location, book) quantities and low-stock thresholds.

"""
Stock ledger invariants (authoritative)

- StockRecord.quantity >= 0 at all times. credit() and debit() are the only
  primitives other services use to change it, so the check lives in one place.
- Mutations on one (location_id, book_id) key are serialized by stock_locks;
  different keys proceed independently.
- Rows are created lazily on first assignment and never deleted.
- Every committed mutation is followed by a best-effort alert refresh for the
  key, in its own transaction (see alert_service).
"""

from __future__ import annotations

from flask import current_app

from ..errors import InsufficientStockError, InvalidQuantityError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Location, StockRecord
from ..models.registry import RECORD_TRASHED
from .alert_service import refresh_alerts
from .audit_service import append_audit_event
from .catalog_service import get_book
from .concurrency import lock_for_update, run_atomically, stock_locks
from .location_service import get_location


def default_threshold() -> int:
    return int(current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5))


def _locked_record(location_id: int, book_id: int) -> StockRecord | None:
    return lock_for_update(
        db.session.query(StockRecord).filter_by(location_id=location_id, book_id=book_id)
    ).first()


def credit(location: Location, book_id: int, delta: int) -> StockRecord:
    """
    Add delta copies to a ledger row, creating it with the default threshold if needed.

    Does not commit. The caller holds stock_locks for (location.id, book_id).
    """
    if delta < 0:
        raise InvalidQuantityError("Credit amount cannot be negative")

    record = _locked_record(location.id, book_id)
    if record is None:
        record = StockRecord(
            location_id=location.id,
            location_kind=location.kind,
            book_id=book_id,
            quantity=0,
            low_stock_threshold=default_threshold(),
        )
        db.session.add(record)

    record.quantity = (record.quantity or 0) + delta
    db.session.flush()
    return record


def debit(location: Location, book_id: int, delta: int) -> StockRecord:
    """
    Remove delta copies from a ledger row.

    Raises InsufficientStockError, leaving the row untouched, when the row is
    missing or holds fewer than delta. Does not commit.
    """
    if delta < 0:
        raise InvalidQuantityError("Debit amount cannot be negative")

    record = _locked_record(location.id, book_id)
    available = record.quantity if record else 0
    if record is None or available < delta:
        raise InsufficientStockError(
            f"Insufficient stock for book {book_id} at {location.kind.lower()} {location.id}: "
            f"available {available}, requested {delta}",
            available=available,
            requested=delta,
        )

    record.quantity = available - delta
    db.session.flush()
    return record


def set_stock(
    location_id: int,
    book_id: int,
    quantity: int,
    *,
    threshold: int | None = None,
    kind: str | None = None,
    actor_id: str | None = None,
) -> StockRecord:
    """
    Upsert the ledger row for (location, book).

    threshold keeps its current value when omitted (or the configured default
    for a new row). Negative values raise InvalidQuantityError.
    """
    if quantity is None or quantity < 0:
        raise InvalidQuantityError("Stock cannot be negative")
    if threshold is not None and threshold < 0:
        raise InvalidQuantityError("Low stock threshold cannot be negative")

    key = (location_id, book_id)

    def _op():
        location = get_location(location_id, kind=kind)
        if location.is_trashed:
            raise ValidationError(f"Cannot update stock of a {location.kind.lower()} in bin")
        get_book(book_id)

        record = _locked_record(location_id, book_id)
        previous = record.quantity if record else None
        if record is None:
            record = StockRecord(
                location_id=location_id,
                location_kind=location.kind,
                book_id=book_id,
                low_stock_threshold=default_threshold(),
            )
            db.session.add(record)

        record.quantity = quantity
        if threshold is not None:
            record.low_stock_threshold = threshold
        db.session.flush()

        append_audit_event(
            event_type="stock.set",
            entity_type="stock_record",
            entity_id=record.id,
            actor_id=actor_id,
            location_id=location_id,
            payload={
                "book_id": book_id,
                "previous_quantity": previous,
                "quantity": record.quantity,
                "low_stock_threshold": record.low_stock_threshold,
            },
        )
        return record

    with stock_locks.hold(key):
        record = run_atomically(_op)
        current_app.logger.info(
            "Stock set location_id=%s book_id=%s quantity=%s threshold=%s",
            location_id, book_id, record.quantity, record.low_stock_threshold,
        )
        refresh_alerts([key])
    return record


def get_stock(location_id: int, book_id: int) -> StockRecord | None:
    """Ledger row for the key, or None when nothing was ever assigned."""
    get_location(location_id)
    get_book(book_id)
    return db.session.query(StockRecord).filter_by(location_id=location_id, book_id=book_id).first()


def list_stock(location_id: int, *, kind: str | None = None) -> list[StockRecord]:
    """Rows for one live location, ordered by book id. Trashed locations read as NotFound."""
    location = get_location(location_id, kind=kind)
    if location.is_trashed:
        raise NotFoundError(f"{location.kind.title()} {location_id} not found")
    return (
        db.session.query(StockRecord)
        .filter(StockRecord.location_id == location_id)
        .order_by(StockRecord.book_id.asc())
        .all()
    )


def list_orphaned_stock(*, kind: str | None = None) -> list[StockRecord]:
    """Bin view: stock rows whose location is trashed."""
    q = (
        db.session.query(StockRecord)
        .join(Location, Location.id == StockRecord.location_id)
        .filter(Location.record_state == RECORD_TRASHED)
    )
    if kind:
        q = q.filter(StockRecord.location_kind == kind)
    return q.order_by(StockRecord.location_id.asc(), StockRecord.book_id.asc()).all()
