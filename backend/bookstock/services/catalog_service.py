# Overview: Book identity registry plus per-book stock rollups.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import DuplicateCodeError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Book, Location, StockRecord
from ..models.registry import LOCATION_KIND_STORE, LOCATION_KIND_WAREHOUSE, RECORD_ACTIVE
from .concurrency import run_atomically


def get_book(book_id: int) -> Book:
    book = db.session.get(Book, book_id)
    if not book:
        raise NotFoundError(f"Book {book_id} not found")
    return book


def create_book(*, title: str, isbn: str | None = None) -> Book:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")
    isbn = (isbn or "").strip() or None

    def _op():
        if isbn and db.session.query(Book).filter_by(isbn=isbn).first():
            raise DuplicateCodeError(f"Book with ISBN {isbn} already exists")
        book = Book(title=title, isbn=isbn)
        db.session.add(book)
        db.session.flush()
        return book

    book = run_atomically(_op)
    current_app.logger.info("Book created id=%s title=%r", book.id, book.title)
    return book


def book_stock_summary(book_id: int) -> dict:
    """Copies of one book on hand, split by location kind (trashed locations excluded)."""
    get_book(book_id)

    rows = (
        db.session.query(StockRecord.location_kind, func.coalesce(func.sum(StockRecord.quantity), 0))
        .join(Location, Location.id == StockRecord.location_id)
        .filter(StockRecord.book_id == book_id, Location.record_state == RECORD_ACTIVE)
        .group_by(StockRecord.location_kind)
        .all()
    )
    totals = {kind: int(total) for kind, total in rows}
    warehouse_total = totals.get(LOCATION_KIND_WAREHOUSE, 0)
    store_total = totals.get(LOCATION_KIND_STORE, 0)
    return {
        "book_id": book_id,
        "warehouse_quantity": warehouse_total,
        "store_quantity": store_total,
        "total_quantity": warehouse_total + store_total,
    }


def book_stock_presence() -> dict:
    """
    How many active warehouses carry a stock row for each book.

    Only books with at least one such row appear in by_book.
    """
    live_warehouse = (
        Location.kind == LOCATION_KIND_WAREHOUSE,
        Location.record_state == RECORD_ACTIVE,
        Location.is_active.is_(True),
    )

    total_warehouses = db.session.query(func.count(Location.id)).filter(*live_warehouse).scalar() or 0

    rows = (
        db.session.query(StockRecord.book_id, func.count(func.distinct(StockRecord.location_id)))
        .join(Location, Location.id == StockRecord.location_id)
        .filter(*live_warehouse)
        .group_by(StockRecord.book_id)
        .order_by(StockRecord.book_id.asc())
        .all()
    )
    return {
        "total_warehouses": int(total_warehouses),
        "by_book": [{"book_id": book_id, "warehouse_count": int(count)} for book_id, count in rows],
    }
