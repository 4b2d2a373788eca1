from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ALERT_STATUS_OPEN = "OPEN"
ALERT_STATUS_RESOLVED = "RESOLVED"
ALERT_STATUSES = (ALERT_STATUS_OPEN, ALERT_STATUS_RESOLVED)


class StockRecord(db.Model):
    """
    Ledger row: copies of one book held at one location.

    Key is (location_id, book_id); location_kind is denormalized from the
    location so ledger queries can split warehouse and store stock without a
    join.

    INVARIANTS:
    - quantity >= 0 (checked here and in stock_service.debit)
    - rows are created lazily on first assignment and never deleted; zero is a
      valid resting state
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.UniqueConstraint("location_id", "book_id", name="uq_stock_records_location_book"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_records_quantity_non_negative"),
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_stock_records_threshold_non_negative"),
        db.Index("ix_stock_records_kind_book", "location_kind", "book_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    location_kind = db.Column(db.String(16), nullable=False)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    location = db.relationship("Location", backref=db.backref("stock_records", lazy=True))
    book = db.relationship("Book")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def key(self) -> tuple[int, int]:
        return (self.location_id, self.book_id)

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<StockRecord location_id={self.location_id} book_id={self.book_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "location_kind": self.location_kind,
            "book_id": self.book_id,
            "book": self.book.to_dict() if self.book else None,
            "quantity": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low": self.is_low,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransfer(db.Model):
    """
    Immutable log entry for one movement of stock between two locations.

    A transfer is a fact, not a document: it is written in the same
    transaction as the debit and credit it records and never updated.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_transfers_quantity_positive"),
        db.CheckConstraint("from_location_id <> to_location_id", name="ck_stock_transfers_distinct_locations"),
        db.Index("ix_stock_transfers_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    from_location_kind = db.Column(db.String(16), nullable=False)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    to_location_kind = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(280), nullable=True)

    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    book = db.relationship("Book")
    from_location = db.relationship("Location", foreign_keys=[from_location_id])
    to_location = db.relationship("Location", foreign_keys=[to_location_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "from_location": self.from_location.to_summary() if self.from_location else None,
            "to_location": self.to_location.to_summary() if self.to_location else None,
            "quantity": self.quantity,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class LowStockAlert(db.Model):
    """
    Low-stock signal for a (location, book) pair.

    quantity/threshold are a snapshot taken when the alert opened and are not
    touched while it stays open. At most one OPEN alert exists per pair; the
    partial unique index backs up the check in alert_service.
    """
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.Index(
            "uq_low_stock_alerts_open",
            "location_id",
            "book_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_low_stock_alerts_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    location_kind = db.Column(db.String(16), nullable=False)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=ALERT_STATUS_OPEN)

    # Snapshot at open time
    quantity = db.Column(db.Integer, nullable=False)
    threshold = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    location = db.relationship("Location")
    book = db.relationship("Book")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location": self.location.to_summary() if self.location else None,
            "book_id": self.book_id,
            "book": self.book.to_dict() if self.book else None,
            "status": self.status,
            "quantity": self.quantity,
            "threshold": self.threshold,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }
