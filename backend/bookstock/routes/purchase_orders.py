# Overview: Flask API routes for the purchase order lifecycle.

"""
Purchase Order Routes

LIFECYCLE: DRAFT -> SENT -> PARTIALLY_RECEIVED -> RECEIVED -> CLOSED,
DRAFT | SENT -> CANCELLED. Receiving credits the order's warehouse.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import InventoryError, ValidationError
from ..extensions import db
from ..services import purchase_order_service
from ..validation import (
    coerce_int,
    optional_bool,
    optional_cost,
    optional_datetime,
    optional_str,
    require_fields,
)


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/warehouses/purchase-orders")


def _unexpected(message: str, *args):
    db.session.rollback()
    current_app.logger.exception(message, *args)
    return jsonify({"error": "Internal server error"}), 500


def _receive_items(data: dict) -> dict | None:
    """[{item_id, received_quantity}, ...] -> {item_id: quantity}."""
    raw = data.get("items")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")

    items: dict[int, int] = {}
    for entry in raw:
        entry = require_fields(entry, "item_id", "received_quantity")
        item_id = coerce_int(entry["item_id"], "item_id")
        if item_id in items:
            raise ValidationError(f"Item {item_id} listed more than once")
        items[item_id] = coerce_int(entry["received_quantity"], "received_quantity")
    return items


@purchase_orders_bp.get("")
def list_orders_route():
    """Query: status, warehouse_id, vendor_id, limit."""
    try:
        orders = purchase_order_service.list_orders(
            status=request.args.get("status"),
            warehouse_id=request.args.get("warehouse_id", type=int),
            vendor_id=request.args.get("vendor_id", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)})
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@purchase_orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify(purchase_order_service.get_order(order_id).to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@purchase_orders_bp.post("")
@require_actor
def create_order_route():
    """
    Request body:
    {
        "purchase_request_id": 1,               // required, APPROVED and unlinked
        "vendor_id": 2,                         // required
        "unit_cost": "14.95",                   // optional
        "expected_at": "2026-03-01T12:00:00Z",  // optional
        "notes": "...",                         // optional
        "send": true                            // optional, false keeps the order in DRAFT
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "purchase_request_id", "vendor_id")
        order = purchase_order_service.create_order(
            purchase_request_id=coerce_int(data["purchase_request_id"], "purchase_request_id"),
            vendor_id=coerce_int(data["vendor_id"], "vendor_id"),
            unit_cost=optional_cost(data, "unit_cost"),
            expected_at=optional_datetime(data, "expected_at"),
            notes=optional_str(data, "notes"),
            send=optional_bool(data, "send", default=True),
            actor_id=g.actor_id,
        )
        return jsonify(order.to_dict()), 201
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to create purchase order")


@purchase_orders_bp.post("/batch")
@require_actor
def create_batch_route():
    """
    One order per request id, best-effort.

    Returns {created_count, orders, skipped: [{purchase_request_id, error, reason}]}.
    """
    try:
        data = require_fields(request.get_json(silent=True), "purchase_request_ids", "vendor_id")
        raw_ids = data["purchase_request_ids"]
        if not isinstance(raw_ids, list):
            raise ValidationError("purchase_request_ids must be a list")
        result = purchase_order_service.create_batch(
            purchase_request_ids=[coerce_int(i, "purchase_request_ids") for i in raw_ids],
            vendor_id=coerce_int(data["vendor_id"], "vendor_id"),
            unit_cost=optional_cost(data, "unit_cost"),
            expected_at=optional_datetime(data, "expected_at"),
            notes=optional_str(data, "notes"),
            send=optional_bool(data, "send", default=True),
            actor_id=g.actor_id,
        )
        return jsonify({
            "created_count": result["created_count"],
            "orders": [o.to_dict() for o in result["orders"]],
            "skipped": result["skipped"],
        }), 201
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to create purchase order batch")


@purchase_orders_bp.patch("/<int:order_id>/send")
@require_actor
def send_order_route(order_id: int):
    try:
        order = purchase_order_service.send_order(order_id, actor_id=g.actor_id)
        return jsonify(order.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to send purchase order %s", order_id)


@purchase_orders_bp.patch("/<int:order_id>/receive")
@require_actor
def receive_order_route(order_id: int):
    """
    Request body (all optional):
    {
        "note": "Pallet 2 of 2",
        "close_when_fully_received": true,
        "items": [{"item_id": 7, "received_quantity": 3}]   // omit to receive everything outstanding
    }
    """
    try:
        data = require_fields(request.get_json(silent=True))
        order = purchase_order_service.receive_order(
            order_id,
            note=optional_str(data, "note"),
            close_when_fully_received=optional_bool(data, "close_when_fully_received"),
            items=_receive_items(data),
            actor_id=g.actor_id,
        )
        return jsonify(order.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to receive purchase order %s", order_id)


@purchase_orders_bp.patch("/<int:order_id>/close")
@require_actor
def close_order_route(order_id: int):
    try:
        order = purchase_order_service.close_order(order_id, actor_id=g.actor_id)
        return jsonify(order.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to close purchase order %s", order_id)


@purchase_orders_bp.patch("/<int:order_id>/cancel")
@require_actor
def cancel_order_route(order_id: int):
    """Body: {"reason": "..."} (optional)."""
    try:
        data = require_fields(request.get_json(silent=True))
        order = purchase_order_service.cancel_order(
            order_id, reason=optional_str(data, "reason"), actor_id=g.actor_id
        )
        return jsonify(order.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        return _unexpected("Failed to cancel purchase order %s", order_id)
