# Overview: Flask API routes for the purchase request workflow.

"""
Purchase Request Routes

LIFECYCLE: DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED; APPROVED -> COMPLETED.
State-machine violations come back as 409.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import InventoryError
from ..extensions import db
from ..services import purchase_request_service
from ..validation import (
    coerce_int,
    optional_bool,
    optional_cost,
    optional_int,
    optional_str,
    require_fields,
)


purchase_requests_bp = Blueprint("purchase_requests", __name__, url_prefix="/api/warehouses/purchase-requests")


def _unexpected(message: str, *args):
    db.session.rollback()
    current_app.logger.exception(message, *args)
    return jsonify({"error": "Internal server error"}), 500


@purchase_requests_bp.get("")
def list_requests_route():
    """Query: status, warehouse_id, requested_by, limit."""
    try:
        requests_ = purchase_request_service.list_requests(
            status=request.args.get("status"),
            warehouse_id=request.args.get("warehouse_id", type=int),
            requested_by=request.args.get("requested_by"),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"items": [r.to_dict() for r in requests_], "count": len(requests_)})
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@purchase_requests_bp.get("/<int:request_id>")
def get_request_route(request_id: int):
    try:
        return jsonify(purchase_request_service.get_request(request_id).to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@purchase_requests_bp.post("")
@require_actor
def create_request_route():
    """
    Request body:
    {
        "book_id": 1,                  // required
        "warehouse_id": 2,             // required
        "quantity": 25,                // required, > 0
        "estimated_cost": "129.50",    // optional
        "review_note": "...",          // optional
        "submit_for_approval": false   // optional, starts at PENDING_APPROVAL when true
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "book_id", "warehouse_id", "quantity")
        pr = purchase_request_service.create_request(
            book_id=coerce_int(data["book_id"], "book_id"),
            warehouse_id=coerce_int(data["warehouse_id"], "warehouse_id"),
            quantity=coerce_int(data["quantity"], "quantity"),
            estimated_cost=optional_cost(data, "estimated_cost"),
            review_note=optional_str(data, "review_note"),
            submit_for_approval=optional_bool(data, "submit_for_approval"),
            actor_id=g.actor_id,
        )
        return jsonify(pr.to_dict()), 201
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to create purchase request")


@purchase_requests_bp.patch("/<int:request_id>")
@require_actor
def update_request_route(request_id: int):
    """Edit quantity / estimated_cost / review_note of a DRAFT request."""
    try:
        data = require_fields(request.get_json(silent=True))
        pr = purchase_request_service.update_request(
            request_id,
            quantity=optional_int(data, "quantity"),
            estimated_cost=optional_cost(data, "estimated_cost"),
            review_note=optional_str(data, "review_note"),
            clear_estimated_cost="estimated_cost" in data and data["estimated_cost"] is None,
            actor_id=g.actor_id,
        )
        return jsonify(pr.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to update purchase request %s", request_id)


@purchase_requests_bp.patch("/<int:request_id>/submit")
@require_actor
def submit_request_route(request_id: int):
    try:
        pr = purchase_request_service.submit_request(request_id, actor_id=g.actor_id)
        return jsonify(pr.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to submit purchase request %s", request_id)


@purchase_requests_bp.patch("/<int:request_id>/review")
@require_actor
def review_request_route(request_id: int):
    """
    Request body:
    {
        "action": "APPROVE" | "REJECT",  // required
        "approved_quantity": 20,         // optional, defaults to the requested quantity
        "approved_cost": "100.50",       // optional, defaults to the estimated cost
        "review_note": "..."             // optional
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "action")
        pr = purchase_request_service.review_request(
            request_id,
            action=str(data["action"]),
            approved_quantity=optional_int(data, "approved_quantity"),
            approved_cost=optional_cost(data, "approved_cost"),
            review_note=optional_str(data, "review_note"),
            actor_id=g.actor_id,
        )
        return jsonify(pr.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to review purchase request %s", request_id)


@purchase_requests_bp.patch("/<int:request_id>/complete")
@require_actor
def complete_request_route(request_id: int):
    try:
        pr = purchase_request_service.complete_request(request_id, actor_id=g.actor_id)
        return jsonify(pr.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to complete purchase request %s", request_id)
