# Overview: Flask API routes for transfers, low-stock alerts, stock rollups and the audit trail.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import InventoryError
from ..extensions import db
from ..services import alert_service, audit_service, catalog_service, transfer_service
from ..validation import coerce_int, require_fields


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/warehouses")


@ledger_bp.get("/book-stock-presence")
def book_stock_presence_route():
    """How many active warehouses carry each book, plus the active warehouse count."""
    return jsonify(catalog_service.book_stock_presence())


@ledger_bp.get("/books/<int:book_id>/stock-summary")
def book_stock_summary_route(book_id: int):
    try:
        return jsonify(catalog_service.book_stock_summary(book_id))
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@ledger_bp.get("/alerts/low-stock")
def list_low_stock_alerts_route():
    """
    Query parameters:
    - status: OPEN (default), RESOLVED or ALL
    - limit: max rows (default ALERT_LIST_LIMIT)
    """
    try:
        alerts = alert_service.list_alerts(
            status=request.args.get("status", "OPEN"),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"items": [a.to_dict() for a in alerts], "count": len(alerts)})
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@ledger_bp.get("/transfers")
def list_transfers_route():
    """Query: limit, location_id, book_id. Newest first."""
    transfers = transfer_service.list_transfers(
        limit=request.args.get("limit", type=int),
        location_id=request.args.get("location_id", type=int),
        book_id=request.args.get("book_id", type=int),
    )
    return jsonify({"items": [t.to_dict() for t in transfers], "count": len(transfers)})


@ledger_bp.post("/transfers")
@require_actor
def create_transfer_route():
    """
    Request body:
    {
        "book_id": 1,             // required
        "from_location_id": 2,    // required, a warehouse
        "to_location_id": 3,      // required, warehouse or store
        "quantity": 10,           // required, > 0
        "note": "Weekend restock" // optional
    }
    """
    try:
        data = require_fields(
            request.get_json(silent=True), "book_id", "from_location_id", "to_location_id", "quantity"
        )
        transfer = transfer_service.transfer_stock(
            book_id=coerce_int(data["book_id"], "book_id"),
            from_location_id=coerce_int(data["from_location_id"], "from_location_id"),
            to_location_id=coerce_int(data["to_location_id"], "to_location_id"),
            quantity=coerce_int(data["quantity"], "quantity"),
            actor_id=g.actor_id,
            note=data.get("note"),
        )
        return jsonify(transfer.to_dict()), 201
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Transfer failed")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/audit-events")
def list_audit_events_route():
    """Query: entity_type, entity_id, event_type, location_id, limit."""
    events = audit_service.list_audit_events(
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        event_type=request.args.get("event_type"),
        location_id=request.args.get("location_id", type=int),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"items": [e.to_dict() for e in events], "count": len(events)})
