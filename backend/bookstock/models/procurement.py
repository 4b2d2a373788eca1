from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


# Purchase request lifecycle
REQUEST_STATUS_DRAFT = "DRAFT"
REQUEST_STATUS_PENDING_APPROVAL = "PENDING_APPROVAL"
REQUEST_STATUS_APPROVED = "APPROVED"
REQUEST_STATUS_REJECTED = "REJECTED"
REQUEST_STATUS_COMPLETED = "COMPLETED"
REQUEST_STATUSES = (
    REQUEST_STATUS_DRAFT,
    REQUEST_STATUS_PENDING_APPROVAL,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_COMPLETED,
)

# Purchase order lifecycle
ORDER_STATUS_DRAFT = "DRAFT"
ORDER_STATUS_SENT = "SENT"
ORDER_STATUS_PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
ORDER_STATUS_RECEIVED = "RECEIVED"
ORDER_STATUS_CLOSED = "CLOSED"
ORDER_STATUS_CANCELLED = "CANCELLED"
ORDER_STATUSES = (
    ORDER_STATUS_DRAFT,
    ORDER_STATUS_SENT,
    ORDER_STATUS_PARTIALLY_RECEIVED,
    ORDER_STATUS_RECEIVED,
    ORDER_STATUS_CLOSED,
    ORDER_STATUS_CANCELLED,
)
# Orders that have delivered everything they ever will
ORDER_TERMINAL_RECEIVED = (ORDER_STATUS_RECEIVED, ORDER_STATUS_CLOSED)


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


class PurchaseRequest(db.Model):
    """
    Internal ask to replenish a warehouse's stock of one book.

    LIFECYCLE:
    DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED
    APPROVED -> COMPLETED

    purchase_order_id is set exactly once, when the request is converted into
    a purchase order. The unique constraint keeps it to one order per request.
    """
    __tablename__ = "purchase_requests"
    __table_args__ = (
        db.UniqueConstraint("purchase_order_id", name="uq_purchase_requests_order"),
        db.CheckConstraint("quantity > 0", name="ck_purchase_requests_quantity_positive"),
        db.Index("ix_purchase_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    estimated_cost = db.Column(db.Numeric(12, 2), nullable=True)

    status = db.Column(db.String(32), nullable=False, default=REQUEST_STATUS_DRAFT)

    # Review outcome
    approved_quantity = db.Column(db.Integer, nullable=True)
    approved_cost = db.Column(db.Numeric(12, 2), nullable=True)
    review_note = db.Column(db.String(500), nullable=True)

    requested_by = db.Column(db.String(64), nullable=False)
    approved_by = db.Column(db.String(64), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    book = db.relationship("Book")
    warehouse = db.relationship("Location")
    purchase_order = db.relationship("PurchaseOrder", back_populates="request", foreign_keys=[purchase_order_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_linked(self) -> bool:
        return self.purchase_order_id is not None

    def __repr__(self) -> str:
        return f"<PurchaseRequest id={self.id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "book": self.book.to_dict() if self.book else None,
            "warehouse": self.warehouse.to_summary() if self.warehouse else None,
            "quantity": self.quantity,
            "estimated_cost": _money(self.estimated_cost),
            "status": self.status,
            "approved_quantity": self.approved_quantity,
            "approved_cost": _money(self.approved_cost),
            "review_note": self.review_note,
            "requested_by": self.requested_by,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "completed_at": to_utc_z(self.completed_at),
            "purchase_order_id": self.purchase_order_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseOrder(db.Model):
    """
    Vendor-facing commitment for stock delivered to one warehouse.

    LIFECYCLE:
    DRAFT -> SENT -> PARTIALLY_RECEIVED -> RECEIVED -> CLOSED
    DRAFT | SENT (nothing received yet) -> CANCELLED

    total_cost is derived from the items and never stored.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    status = db.Column(db.String(32), nullable=False, default=ORDER_STATUS_DRAFT)

    created_by = db.Column(db.String(64), nullable=False)
    approved_by = db.Column(db.String(64), nullable=True)

    expected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.String(500), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    vendor = db.relationship("Vendor")
    warehouse = db.relationship("Location")
    items = db.relationship(
        "PurchaseOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )
    request = db.relationship(
        "PurchaseRequest",
        back_populates="purchase_order",
        uselist=False,
        foreign_keys="PurchaseRequest.purchase_order_id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_cost(self) -> Decimal | None:
        """Sum of ordered_quantity * unit_cost; None while any item has no cost."""
        if not self.items or any(item.unit_cost is None for item in self.items):
            return None
        return sum((item.line_cost for item in self.items), Decimal("0"))

    @property
    def is_fully_received(self) -> bool:
        return bool(self.items) and all(i.received_quantity >= i.ordered_quantity for i in self.items)

    @property
    def has_receipts(self) -> bool:
        return any(i.received_quantity > 0 for i in self.items)

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor": self.vendor.to_dict() if self.vendor else None,
            "warehouse": self.warehouse.to_summary() if self.warehouse else None,
            "status": self.status,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "expected_at": to_utc_z(self.expected_at),
            "sent_at": to_utc_z(self.sent_at),
            "received_at": to_utc_z(self.received_at),
            "closed_at": to_utc_z(self.closed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "notes": self.notes,
            "total_cost": _money(self.total_cost),
            "items": [item.to_dict() for item in self.items],
            "purchase_request_id": self.request.id if self.request else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseOrderItem(db.Model):
    """
    One book line on a purchase order.

    ordered_quantity is fixed at creation; received_quantity only grows and
    never passes ordered_quantity.
    """
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("ordered_quantity > 0", name="ck_po_items_ordered_positive"),
        db.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= ordered_quantity",
            name="ck_po_items_received_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    ordered_quantity = db.Column(db.Integer, nullable=False)
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)

    order = db.relationship("PurchaseOrder", back_populates="items")
    book = db.relationship("Book")

    @property
    def remaining_quantity(self) -> int:
        return self.ordered_quantity - self.received_quantity

    @property
    def line_cost(self) -> Decimal | None:
        if self.unit_cost is None:
            return None
        return Decimal(self.unit_cost) * self.ordered_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "book": self.book.to_dict() if self.book else None,
            "ordered_quantity": self.ordered_quantity,
            "received_quantity": self.received_quantity,
            "remaining_quantity": self.remaining_quantity,
            "unit_cost": _money(self.unit_cost),
            "line_cost": _money(self.line_cost),
        }
