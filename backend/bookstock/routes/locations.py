# Overview: Flask API routes for the warehouse and store registries and their stock.

"""
Location Routes

Warehouses (/api/warehouses) and stores (/api/stores) expose the same
registry and stock endpoints; build_location_blueprint() wires one set per
kind. Mutations require the actor header (see decorators.require_actor).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import InventoryError
from ..extensions import db
from ..models import Location
from ..models.registry import LOCATION_KIND_STORE, LOCATION_KIND_WAREHOUSE
from ..services import location_service, stock_service
from ..validation import ModelValidationPolicy, coerce_int, optional_int, require_fields, validate_payload


LOCATION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "address", "city", "region", "phone", "email", "is_active"},
    required_on_create={"code", "name"},
)
LOCATION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "address", "city", "region", "phone", "email", "is_active"},
)


def _unexpected(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


def build_location_blueprint(name: str, url_prefix: str, kind: str) -> Blueprint:
    bp = Blueprint(name, __name__, url_prefix=url_prefix)
    label = kind.lower()

    @bp.get("")
    def list_locations_route():
        """Query: status=active|trashed|all (default active)."""
        try:
            locations = location_service.list_locations(kind=kind, status=request.args.get("status", "active"))
            return jsonify({"items": [loc.to_dict() for loc in locations], "count": len(locations)})
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to list {label}s")

    @bp.get("/<int:location_id>")
    def get_location_route(location_id: int):
        try:
            location = location_service.get_location(location_id, kind=kind)
            return jsonify(location.to_dict())
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code

    @bp.post("")
    @require_actor
    def create_location_route():
        """
        Request body:
        {
            "code": "WH-01",     // required, immutable
            "name": "Central",   // required
            "address": "...", "city": "...", "region": "...",
            "phone": "...", "email": "...", "is_active": true
        }
        """
        try:
            data = validate_payload(
                model=Location,
                payload=request.get_json(silent=True),
                policy=LOCATION_CREATE_POLICY,
                partial=False,
            )
            location = location_service.create_location(kind=kind, actor_id=g.actor_id, **data)
            return jsonify(location.to_dict()), 201
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to create {label}")

    @bp.patch("/<int:location_id>")
    @require_actor
    def update_location_route(location_id: int):
        try:
            changes = validate_payload(
                model=Location,
                payload=request.get_json(silent=True),
                policy=LOCATION_UPDATE_POLICY,
                partial=True,
            )
            location = location_service.update_location(
                location_id, changes=changes, kind=kind, actor_id=g.actor_id
            )
            return jsonify(location.to_dict())
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to update {label} {location_id}")

    @bp.delete("/<int:location_id>")
    @require_actor
    def delete_location_route(location_id: int):
        """Moves the location to the bin; its stock rows are kept."""
        try:
            location = location_service.soft_delete_location(location_id, kind=kind, actor_id=g.actor_id)
            return jsonify(location.to_dict())
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to delete {label} {location_id}")

    @bp.patch("/<int:location_id>/restore")
    @require_actor
    def restore_location_route(location_id: int):
        try:
            location = location_service.restore_location(location_id, kind=kind, actor_id=g.actor_id)
            return jsonify(location.to_dict())
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to restore {label} {location_id}")

    @bp.get("/<int:location_id>/stocks")
    def list_stocks_route(location_id: int):
        try:
            records = stock_service.list_stock(location_id, kind=kind)
            return jsonify({"items": [r.to_dict() for r in records], "count": len(records)})
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to list stock for {label} {location_id}")

    @bp.put("/<int:location_id>/stocks/<int:book_id>")
    @require_actor
    def set_stock_route(location_id: int, book_id: int):
        """
        Request body:
        {
            "stock": 12,                 // required, >= 0
            "low_stock_threshold": 5     // optional, kept when omitted
        }
        """
        try:
            data = require_fields(request.get_json(silent=True), "stock")
            record = stock_service.set_stock(
                location_id,
                book_id,
                coerce_int(data["stock"], "stock"),
                threshold=optional_int(data, "low_stock_threshold"),
                kind=kind,
                actor_id=g.actor_id,
            )
            return jsonify(record.to_dict())
        except InventoryError as e:
            return jsonify({"error": str(e)}), e.status_code
        except Exception:
            return _unexpected(f"Failed to set stock for {label} {location_id} book {book_id}")

    @bp.get("/bin/stocks")
    def orphaned_stocks_route():
        """Stock rows of trashed locations of this kind."""
        records = stock_service.list_orphaned_stock(kind=kind)
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)})

    return bp


warehouses_bp = build_location_blueprint("warehouses", "/api/warehouses", LOCATION_KIND_WAREHOUSE)
stores_bp = build_location_blueprint("stores", "/api/stores", LOCATION_KIND_STORE)
