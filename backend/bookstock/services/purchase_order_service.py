# Overview: Purchase order lifecycle: creation from approved requests, sending, receiving, closing.

"""
Purchase order lifecycle

LIFECYCLE:
1. DRAFT: created with send=False, not yet with the vendor
2. SENT: with the vendor (default on creation, stamps sent_at)
3. PARTIALLY_RECEIVED: some copies booked into the warehouse
4. RECEIVED: every item fully received (stamps received_at)
5. CLOSED: RECEIVED and closed, by receive(close_when_fully_received) or close_order()
6. CANCELLED: from DRAFT or SENT while nothing has been received

RECEIVING:
Each item's received_quantity and the matching warehouse credit are written
together, and one receive call is one transaction: a failure on any item
rolls back every item processed before it. received_quantity never passes
ordered_quantity, so receiving a fully received order credits nothing.

LOCKING (acquisition order): order_locks -> request_locks -> stock_locks.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import (
    InvalidQuantityError,
    InvalidTransitionError,
    InventoryError,
    NotFoundError,
    RequestNotApprovableError,
    ValidationError,
)
from ..extensions import db
from ..models import Location, PurchaseOrder, PurchaseOrderItem, PurchaseRequest
from ..models.procurement import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_CLOSED,
    ORDER_STATUS_DRAFT,
    ORDER_STATUS_PARTIALLY_RECEIVED,
    ORDER_STATUS_RECEIVED,
    ORDER_STATUS_SENT,
    ORDER_STATUSES,
    ORDER_TERMINAL_RECEIVED,
    REQUEST_STATUS_APPROVED,
)
from ..models.registry import RECORD_ACTIVE
from ..time_utils import utcnow
from .alert_service import refresh_alerts
from .audit_service import append_audit_event
from .concurrency import lock_for_update, order_locks, request_locks, run_atomically, stock_locks
from .purchase_request_service import mark_completed
from .stock_service import credit
from .vendor_service import get_orderable_vendor

NOTES_MAX_LENGTH = 500


def _clean_text(value: str | None, field: str) -> str | None:
    value = (value or "").strip() or None
    if value and len(value) > NOTES_MAX_LENGTH:
        raise ValidationError(f"{field} exceeds max length {NOTES_MAX_LENGTH}")
    return value


def _locked_order(order_id: int) -> PurchaseOrder:
    order = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def get_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if not order:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def _resolve_unit_cost(unit_cost: Decimal | None, request: PurchaseRequest) -> Decimal | None:
    """Explicit cost, else approved cost, else estimated cost; non-positive means unknown."""
    cost = unit_cost
    if cost is None:
        cost = request.approved_cost if request.approved_cost is not None else request.estimated_cost
    if cost is None or Decimal(cost) <= 0:
        return None
    return Decimal(cost)


def create_order(
    *,
    purchase_request_id: int,
    vendor_id: int,
    actor_id: str,
    unit_cost: Decimal | None = None,
    expected_at: datetime | None = None,
    notes: str | None = None,
    send: bool = True,
) -> PurchaseOrder:
    """
    Convert one APPROVED, unlinked request into a single-item purchase order.

    Raises:
        RequestNotApprovableError: request not APPROVED or already linked
        ValidationError: vendor inactive or in bin, warehouse in bin, bad cost
        NotFoundError: unknown request or vendor
    """
    if unit_cost is not None and unit_cost <= 0:
        raise ValidationError("unit_cost must be greater than zero")
    notes = _clean_text(notes, "notes")

    def _op():
        vendor = get_orderable_vendor(vendor_id)

        request = lock_for_update(db.session.query(PurchaseRequest).filter_by(id=purchase_request_id)).first()
        if not request:
            raise NotFoundError(f"Purchase request {purchase_request_id} not found")
        if request.status != REQUEST_STATUS_APPROVED:
            raise RequestNotApprovableError("Only approved purchase requests can be converted")
        if request.is_linked:
            raise RequestNotApprovableError("Purchase request already has a purchase order")
        if request.warehouse.record_state != RECORD_ACTIVE:
            raise ValidationError("Warehouse is in bin")

        ordered_quantity = request.approved_quantity or request.quantity
        now = utcnow()
        order = PurchaseOrder(
            vendor_id=vendor.id,
            warehouse_id=request.warehouse_id,
            status=ORDER_STATUS_SENT if send else ORDER_STATUS_DRAFT,
            created_by=actor_id,
            approved_by=actor_id,
            expected_at=expected_at,
            sent_at=now if send else None,
            notes=notes,
        )
        order.items.append(
            PurchaseOrderItem(
                book_id=request.book_id,
                ordered_quantity=ordered_quantity,
                received_quantity=0,
                unit_cost=_resolve_unit_cost(unit_cost, request),
            )
        )
        db.session.add(order)
        db.session.flush()

        request.purchase_order = order
        db.session.flush()

        append_audit_event(
            event_type="purchase_order.created",
            entity_type="purchase_order",
            entity_id=order.id,
            actor_id=actor_id,
            location_id=order.warehouse_id,
            payload={
                "purchase_request_id": request.id,
                "vendor_id": vendor.id,
                "book_id": request.book_id,
                "ordered_quantity": ordered_quantity,
                "status": order.status,
            },
        )
        return order

    with request_locks.hold(purchase_request_id):
        order = run_atomically(_op)
    current_app.logger.info(
        "Purchase order created id=%s request_id=%s vendor_id=%s status=%s",
        order.id, purchase_request_id, vendor_id, order.status,
    )
    return order


def create_batch(
    *,
    purchase_request_ids: list[int],
    vendor_id: int,
    actor_id: str,
    unit_cost: Decimal | None = None,
    expected_at: datetime | None = None,
    notes: str | None = None,
    send: bool = True,
) -> dict:
    """
    One independent purchase order per request, all with the same vendor/cost/date.

    Best-effort: each order is its own transaction, and a request that cannot
    be converted is reported under "skipped" without affecting the others.
    Duplicate ids are converted once.
    """
    unique_ids = list(dict.fromkeys(purchase_request_ids or []))
    if not unique_ids:
        raise ValidationError("purchase_request_ids cannot be empty")
    get_orderable_vendor(vendor_id)

    created: list[PurchaseOrder] = []
    skipped: list[dict] = []
    for request_id in unique_ids:
        try:
            order = create_order(
                purchase_request_id=request_id,
                vendor_id=vendor_id,
                actor_id=actor_id,
                unit_cost=unit_cost,
                expected_at=expected_at,
                notes=notes,
                send=send,
            )
        except InventoryError as e:
            skipped.append({"purchase_request_id": request_id, "error": e.code, "reason": str(e)})
            continue
        created.append(order)

    current_app.logger.info(
        "Purchase order batch vendor_id=%s created=%d skipped=%d", vendor_id, len(created), len(skipped)
    )
    return {"created_count": len(created), "orders": created, "skipped": skipped}


def send_order(order_id: int, *, actor_id: str) -> PurchaseOrder:
    """DRAFT -> SENT."""
    def _op():
        order = _locked_order(order_id)
        if order.status != ORDER_STATUS_DRAFT:
            raise InvalidTransitionError("Only draft purchase orders can be sent")
        order.status = ORDER_STATUS_SENT
        order.sent_at = utcnow()
        append_audit_event(
            event_type="purchase_order.sent",
            entity_type="purchase_order",
            entity_id=order.id,
            actor_id=actor_id,
            location_id=order.warehouse_id,
        )
        return order

    with order_locks.hold(order_id):
        order = run_atomically(_op)
    current_app.logger.info("Purchase order id=%s sent", order.id)
    return order


def _incoming_amounts(order: PurchaseOrder, items: dict | None) -> dict[int, int]:
    """
    Per-item quantities to book in this call.

    Without a map every item receives its full remaining quantity; with one,
    only the listed items move. Amounts above the remaining quantity raise.
    """
    by_id = {item.id: item for item in order.items}
    if not items:
        return {item.id: item.remaining_quantity for item in order.items if item.remaining_quantity > 0}

    unknown = sorted(set(items) - set(by_id))
    if unknown:
        raise ValidationError(f"Item {unknown[0]} does not belong to purchase order {order.id}")

    amounts: dict[int, int] = {}
    for item_id, quantity in items.items():
        if quantity < 0:
            raise InvalidQuantityError("Received quantity cannot be negative")
        item = by_id[item_id]
        if item.remaining_quantity <= 0 or quantity == 0:
            continue
        if quantity > item.remaining_quantity:
            raise InvalidQuantityError("Received quantity exceeds ordered quantity")
        amounts[item_id] = quantity
    return amounts


def receive_order(
    order_id: int,
    *,
    actor_id: str,
    note: str | None = None,
    close_when_fully_received: bool = False,
    items: dict[int, int] | None = None,
) -> PurchaseOrder:
    """
    Book delivered copies into the order's warehouse.

    items maps item id -> quantity for a partial receipt; omit it to receive
    everything still outstanding. Fully received orders become RECEIVED (or
    CLOSED with close_when_fully_received) and complete their request.
    """
    note = _clean_text(note, "note")
    if items:
        items = {int(k): int(v) for k, v in items.items()}

    peek = get_order(order_id)
    stock_keys = [(peek.warehouse_id, item.book_id) for item in peek.items]
    request_ids = [peek.request.id] if peek.request else []
    # Re-read under the locks from a fresh transaction
    db.session.rollback()

    def _op():
        order = _locked_order(order_id)
        if order.status in (ORDER_STATUS_CLOSED, ORDER_STATUS_CANCELLED):
            raise InvalidTransitionError(f"Purchase order is {order.status.lower()} and cannot receive stock")
        if order.status == ORDER_STATUS_DRAFT:
            raise InvalidTransitionError("Purchase order must be sent before receiving")
        if not order.items:
            raise ValidationError("Purchase order has no items")

        warehouse = db.session.get(Location, order.warehouse_id)
        amounts = _incoming_amounts(order, items)
        for item in order.items:
            incoming = amounts.get(item.id, 0)
            if incoming <= 0:
                continue
            item.received_quantity += incoming
            credit(warehouse, item.book_id, incoming)

        previous = order.status
        now = utcnow()
        if order.is_fully_received:
            if order.received_at is None:
                order.received_at = now
            if close_when_fully_received:
                order.status = ORDER_STATUS_CLOSED
                order.closed_at = now
            else:
                order.status = ORDER_STATUS_RECEIVED
        elif order.has_receipts:
            order.status = ORDER_STATUS_PARTIALLY_RECEIVED

        if note:
            order.notes = f"{order.notes}\n{note}" if order.notes else note

        completed_request = False
        if order.status in ORDER_TERMINAL_RECEIVED and order.request is not None:
            completed_request = mark_completed(order.request)

        db.session.flush()
        append_audit_event(
            event_type="purchase_order.received",
            entity_type="purchase_order",
            entity_id=order.id,
            actor_id=actor_id,
            location_id=order.warehouse_id,
            note=note,
            payload={
                "from": previous,
                "to": order.status,
                "received": {str(k): v for k, v in amounts.items()},
                "completed_request": completed_request,
            },
        )
        return order, amounts

    with order_locks.hold(order_id), request_locks.hold(*request_ids), stock_locks.hold(*stock_keys):
        order, amounts = run_atomically(_op)
        current_app.logger.info(
            "Purchase order id=%s received units=%d status=%s", order.id, sum(amounts.values()), order.status
        )
        if amounts:
            refresh_alerts(stock_keys)
    return order


def close_order(order_id: int, *, actor_id: str) -> PurchaseOrder:
    """RECEIVED -> CLOSED."""
    def _op():
        order = _locked_order(order_id)
        if order.status != ORDER_STATUS_RECEIVED:
            raise InvalidTransitionError("Only fully received purchase orders can be closed")
        order.status = ORDER_STATUS_CLOSED
        order.closed_at = utcnow()
        if order.request is not None:
            mark_completed(order.request)
        append_audit_event(
            event_type="purchase_order.closed",
            entity_type="purchase_order",
            entity_id=order.id,
            actor_id=actor_id,
            location_id=order.warehouse_id,
        )
        return order

    with order_locks.hold(order_id):
        order = run_atomically(_op)
    current_app.logger.info("Purchase order id=%s closed", order.id)
    return order


def cancel_order(order_id: int, *, actor_id: str, reason: str | None = None) -> PurchaseOrder:
    """
    DRAFT | SENT -> CANCELLED, only while nothing has been received.

    The originating request stays APPROVED and linked to the cancelled order.
    """
    reason = _clean_text(reason, "reason")

    def _op():
        order = _locked_order(order_id)
        if order.status not in (ORDER_STATUS_DRAFT, ORDER_STATUS_SENT) or order.has_receipts:
            raise InvalidTransitionError(f"Purchase order in {order.status} status cannot be cancelled")
        order.status = ORDER_STATUS_CANCELLED
        order.cancelled_at = utcnow()
        order.cancellation_reason = reason
        append_audit_event(
            event_type="purchase_order.cancelled",
            entity_type="purchase_order",
            entity_id=order.id,
            actor_id=actor_id,
            location_id=order.warehouse_id,
            note=reason,
        )
        return order

    with order_locks.hold(order_id):
        order = run_atomically(_op)
    current_app.logger.info("Purchase order id=%s cancelled", order.id)
    return order


def list_orders(
    *,
    status: str | None = None,
    warehouse_id: int | None = None,
    vendor_id: int | None = None,
    limit: int | None = None,
) -> list[PurchaseOrder]:
    """Newest first; orders for warehouses in the bin are left out."""
    q = (
        db.session.query(PurchaseOrder)
        .join(Location, Location.id == PurchaseOrder.warehouse_id)
        .filter(Location.record_state == RECORD_ACTIVE)
    )
    if status:
        status = status.upper()
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        q = q.filter(PurchaseOrder.status == status)
    if warehouse_id is not None:
        q = q.filter(PurchaseOrder.warehouse_id == warehouse_id)
    if vendor_id is not None:
        q = q.filter(PurchaseOrder.vendor_id == vendor_id)

    max_limit = current_app.config.get("MAX_LIST_LIMIT", 200)
    limit = max_limit if limit is None else max(1, min(int(limit), max_limit))
    return q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).limit(limit).all()
