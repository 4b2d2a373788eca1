# Overview: Transfer engine: atomic stock movement between two locations.

"""
Transfer engine

A transfer debits the source ledger row, credits the destination row and
writes an immutable StockTransfer log entry in one transaction. Either all
three land or none do.

RULES:
- quantity > 0 and source != destination
- the source is a warehouse that is not in the bin
- the destination is a warehouse or store that is active and not in the bin

LOCKING:
Both (location_id, book_id) keys are taken through stock_locks in sorted
order, so a concurrent transfer in the opposite direction waits instead of
deadlocking. Inside the transaction the rows are read FOR UPDATE.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidQuantityError, ValidationError
from ..extensions import db
from ..models import StockTransfer
from .alert_service import refresh_alerts
from .audit_service import append_audit_event
from .catalog_service import get_book
from .concurrency import run_atomically, stock_locks
from .location_service import get_location
from .stock_service import credit, debit


def transfer_stock(
    *,
    book_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity: int,
    actor_id: str,
    note: str | None = None,
) -> StockTransfer:
    """
    Move quantity copies of a book from one location to another.

    Raises:
        InvalidQuantityError: quantity <= 0
        ValidationError: same location on both sides, bad source or destination
        InsufficientStockError: source holds fewer than quantity (nothing changes)
        NotFoundError: unknown book or location
    """
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError("Transfer quantity must be greater than zero")
    if from_location_id == to_location_id:
        raise ValidationError("Source and destination must be different locations")
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string")
    note = (note or "").strip() or None
    if note and len(note) > 280:
        raise ValidationError("note exceeds max length 280")

    source_key = (from_location_id, book_id)
    dest_key = (to_location_id, book_id)

    def _op():
        get_book(book_id)
        source = get_location(from_location_id)
        destination = get_location(to_location_id)

        if not source.is_warehouse:
            raise ValidationError("Transfers must originate from a warehouse")
        if source.is_trashed:
            raise ValidationError("Source warehouse is in bin")
        if destination.is_trashed or not destination.is_active:
            raise ValidationError("Destination not found or inactive")

        debit(source, book_id, quantity)
        credit(destination, book_id, quantity)

        transfer = StockTransfer(
            book_id=book_id,
            from_location_id=source.id,
            from_location_kind=source.kind,
            to_location_id=destination.id,
            to_location_kind=destination.kind,
            quantity=quantity,
            note=note,
            created_by=actor_id,
        )
        db.session.add(transfer)
        db.session.flush()

        append_audit_event(
            event_type="transfer.created",
            entity_type="stock_transfer",
            entity_id=transfer.id,
            actor_id=actor_id,
            location_id=source.id,
            note=note,
            payload={
                "book_id": book_id,
                "from_location_id": source.id,
                "to_location_id": destination.id,
                "quantity": quantity,
            },
        )
        return transfer

    with stock_locks.hold(source_key, dest_key):
        transfer = run_atomically(_op)
        current_app.logger.info(
            "Transfer id=%s book_id=%s %s -> %s quantity=%s",
            transfer.id, book_id, from_location_id, to_location_id, quantity,
        )
        refresh_alerts([source_key, dest_key])
    return transfer


def list_transfers(
    *,
    limit: int | None = None,
    location_id: int | None = None,
    book_id: int | None = None,
) -> list[StockTransfer]:
    """Newest first. location_id matches either side of the transfer."""
    if limit is None:
        limit = current_app.config.get("TRANSFER_LIST_LIMIT", 50)
    limit = max(1, min(int(limit), current_app.config.get("MAX_LIST_LIMIT", 200)))

    q = db.session.query(StockTransfer)
    if location_id is not None:
        q = q.filter(
            (StockTransfer.from_location_id == location_id) | (StockTransfer.to_location_id == location_id)
        )
    if book_id is not None:
        q = q.filter(StockTransfer.book_id == book_id)

    return q.order_by(StockTransfer.created_at.desc(), StockTransfer.id.desc()).limit(limit).all()
