# Overview: Purchase request workflow (DRAFT -> PENDING_APPROVAL -> APPROVED/REJECTED -> COMPLETED).

"""
Purchase request workflow

LIFECYCLE:
1. DRAFT: created, still editable by update_request()
2. PENDING_APPROVAL: submitted, waiting for review
3. APPROVED | REJECTED: review outcome; REJECTED is terminal
4. COMPLETED: the linked purchase order has delivered, or was cancelled and
   the request is closed out by complete_request() (terminal)

No state is revisited. Requests always target a warehouse. Authorization is
handled upstream; actor ids are recorded, not checked.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import InvalidQuantityError, InvalidTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PurchaseRequest
from ..models.procurement import (
    ORDER_STATUS_CANCELLED,
    ORDER_TERMINAL_RECEIVED,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_COMPLETED,
    REQUEST_STATUS_DRAFT,
    REQUEST_STATUS_PENDING_APPROVAL,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUSES,
)
from ..models.registry import LOCATION_KIND_WAREHOUSE
from ..time_utils import utcnow
from .audit_service import append_audit_event
from .catalog_service import get_book
from .concurrency import lock_for_update, request_locks, run_atomically
from .location_service import get_location

REVIEW_APPROVE = "APPROVE"
REVIEW_REJECT = "REJECT"
REVIEW_ACTIONS = (REVIEW_APPROVE, REVIEW_REJECT)

NOTE_MAX_LENGTH = 500


def _clean_note(note: str | None) -> str | None:
    note = (note or "").strip() or None
    if note and len(note) > NOTE_MAX_LENGTH:
        raise ValidationError(f"review_note exceeds max length {NOTE_MAX_LENGTH}")
    return note


def _check_cost(cost: Decimal | None, field: str) -> None:
    if cost is not None and cost < 0:
        raise ValidationError(f"{field} cannot be negative")


def _locked_request(request_id: int) -> PurchaseRequest:
    request = lock_for_update(db.session.query(PurchaseRequest).filter_by(id=request_id)).first()
    if not request:
        raise NotFoundError(f"Purchase request {request_id} not found")
    return request


def get_request(request_id: int) -> PurchaseRequest:
    request = db.session.get(PurchaseRequest, request_id)
    if not request:
        raise NotFoundError(f"Purchase request {request_id} not found")
    return request


def create_request(
    *,
    book_id: int,
    warehouse_id: int,
    quantity: int,
    actor_id: str,
    estimated_cost: Decimal | None = None,
    review_note: str | None = None,
    submit_for_approval: bool = False,
) -> PurchaseRequest:
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError("Requested quantity must be greater than zero")
    _check_cost(estimated_cost, "estimated_cost")
    review_note = _clean_note(review_note)

    def _op():
        warehouse = get_location(warehouse_id, kind=LOCATION_KIND_WAREHOUSE)
        if warehouse.is_trashed:
            raise ValidationError("Warehouse is in bin")
        get_book(book_id)

        request = PurchaseRequest(
            book_id=book_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
            estimated_cost=estimated_cost,
            review_note=review_note,
            requested_by=actor_id,
            status=REQUEST_STATUS_PENDING_APPROVAL if submit_for_approval else REQUEST_STATUS_DRAFT,
        )
        db.session.add(request)
        db.session.flush()

        append_audit_event(
            event_type="purchase_request.created",
            entity_type="purchase_request",
            entity_id=request.id,
            actor_id=actor_id,
            location_id=warehouse_id,
            payload={"book_id": book_id, "quantity": quantity, "status": request.status},
        )
        return request

    request = run_atomically(_op)
    current_app.logger.info(
        "Purchase request created id=%s warehouse_id=%s book_id=%s quantity=%s status=%s",
        request.id, warehouse_id, book_id, quantity, request.status,
    )
    return request


def update_request(
    request_id: int,
    *,
    actor_id: str,
    quantity: int | None = None,
    estimated_cost: Decimal | None = None,
    review_note: str | None = None,
    clear_estimated_cost: bool = False,
) -> PurchaseRequest:
    """Edit quantity, estimated cost or note while the request is still a DRAFT."""
    if quantity is not None and quantity <= 0:
        raise InvalidQuantityError("Requested quantity must be greater than zero")
    _check_cost(estimated_cost, "estimated_cost")
    review_note = _clean_note(review_note)

    def _op():
        request = _locked_request(request_id)
        if request.status != REQUEST_STATUS_DRAFT:
            raise InvalidTransitionError("Only draft requests can be edited")

        if quantity is not None:
            request.quantity = quantity
        if estimated_cost is not None:
            request.estimated_cost = estimated_cost
        elif clear_estimated_cost:
            request.estimated_cost = None
        if review_note is not None:
            request.review_note = review_note

        append_audit_event(
            event_type="purchase_request.updated",
            entity_type="purchase_request",
            entity_id=request.id,
            actor_id=actor_id,
            location_id=request.warehouse_id,
        )
        return request

    with request_locks.hold(request_id):
        return run_atomically(_op)


def _transition(request_id: int, *, actor_id: str | None, event_type: str, mutate) -> PurchaseRequest:
    def _op():
        request = _locked_request(request_id)
        previous = request.status
        mutate(request)
        append_audit_event(
            event_type=event_type,
            entity_type="purchase_request",
            entity_id=request.id,
            actor_id=actor_id,
            location_id=request.warehouse_id,
            note=request.review_note,
            payload={"from": previous, "to": request.status},
        )
        return request, previous

    with request_locks.hold(request_id):
        request, previous = run_atomically(_op)
    current_app.logger.info("Purchase request id=%s %s -> %s", request.id, previous, request.status)
    return request


def submit_request(request_id: int, *, actor_id: str) -> PurchaseRequest:
    """DRAFT -> PENDING_APPROVAL."""
    def _mutate(request: PurchaseRequest):
        if request.status != REQUEST_STATUS_DRAFT:
            raise InvalidTransitionError("Only draft requests can be submitted")
        request.status = REQUEST_STATUS_PENDING_APPROVAL

    return _transition(request_id, actor_id=actor_id, event_type="purchase_request.submitted", mutate=_mutate)


def review_request(
    request_id: int,
    *,
    action: str,
    actor_id: str,
    approved_quantity: int | None = None,
    approved_cost: Decimal | None = None,
    review_note: str | None = None,
) -> PurchaseRequest:
    """
    PENDING_APPROVAL -> APPROVED | REJECTED.

    On APPROVE, approved_quantity defaults to the requested quantity and
    approved_cost to the estimated cost. On REJECT both are cleared.
    """
    action = (action or "").strip().upper()
    if action not in REVIEW_ACTIONS:
        raise ValidationError(f"action must be one of {', '.join(REVIEW_ACTIONS)}")
    if action == REVIEW_APPROVE and approved_quantity is not None and approved_quantity <= 0:
        raise InvalidQuantityError("Approved quantity must be greater than zero")
    _check_cost(approved_cost, "approved_cost")
    review_note = _clean_note(review_note)

    def _mutate(request: PurchaseRequest):
        if request.status != REQUEST_STATUS_PENDING_APPROVAL:
            raise InvalidTransitionError("Only pending requests can be reviewed")

        if action == REVIEW_APPROVE:
            request.status = REQUEST_STATUS_APPROVED
            request.approved_quantity = approved_quantity if approved_quantity is not None else request.quantity
            request.approved_cost = approved_cost if approved_cost is not None else request.estimated_cost
        else:
            request.status = REQUEST_STATUS_REJECTED
            request.approved_quantity = None
            request.approved_cost = None

        request.approved_by = actor_id
        request.approved_at = utcnow()
        if review_note is not None:
            request.review_note = review_note

    event_type = "purchase_request.approved" if action == REVIEW_APPROVE else "purchase_request.rejected"
    return _transition(request_id, actor_id=actor_id, event_type=event_type, mutate=_mutate)


def mark_completed(request: PurchaseRequest) -> bool:
    """
    APPROVED -> COMPLETED inside the caller's transaction.

    Used by purchase order receiving. Returns False, changing nothing, when
    the request is not APPROVED.
    """
    if request.status != REQUEST_STATUS_APPROVED:
        return False
    request.status = REQUEST_STATUS_COMPLETED
    request.completed_at = utcnow()
    return True


def complete_request(request_id: int, *, actor_id: str | None = None) -> PurchaseRequest:
    """
    APPROVED -> COMPLETED.

    A request linked to a purchase order can only complete once that order is
    RECEIVED or CLOSED, or to close out a request whose order was CANCELLED
    (it cannot be converted again).
    """
    def _mutate(request: PurchaseRequest):
        if request.status != REQUEST_STATUS_APPROVED:
            raise InvalidTransitionError("Only approved requests can be completed")
        order = request.purchase_order
        if order is not None and order.status not in ORDER_TERMINAL_RECEIVED + (ORDER_STATUS_CANCELLED,):
            raise InvalidTransitionError(
                f"Linked purchase order {order.id} is {order.status}; it must be received first"
            )
        mark_completed(request)

    return _transition(request_id, actor_id=actor_id, event_type="purchase_request.completed", mutate=_mutate)


def list_requests(
    *,
    status: str | None = None,
    warehouse_id: int | None = None,
    requested_by: str | None = None,
    limit: int | None = None,
) -> list[PurchaseRequest]:
    q = db.session.query(PurchaseRequest)
    if status:
        status = status.upper()
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(REQUEST_STATUSES)}")
        q = q.filter(PurchaseRequest.status == status)
    if warehouse_id is not None:
        q = q.filter(PurchaseRequest.warehouse_id == warehouse_id)
    if requested_by:
        q = q.filter(PurchaseRequest.requested_by == requested_by)

    max_limit = current_app.config.get("MAX_LIST_LIMIT", 200)
    limit = max_limit if limit is None else max(1, min(int(limit), max_limit))
    return q.order_by(PurchaseRequest.created_at.desc(), PurchaseRequest.id.desc()).limit(limit).all()
