# Overview: Flask API routes for the vendor registry.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import InventoryError
from ..extensions import db
from ..models import Vendor
from ..services import vendor_service
from ..validation import ModelValidationPolicy, validate_payload


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/warehouses/vendors")

VENDOR_FIELDS = {"code", "name", "contact_name", "email", "phone", "address", "is_active"}
VENDOR_CREATE_POLICY = ModelValidationPolicy(writable_fields=VENDOR_FIELDS, required_on_create={"code", "name"})
VENDOR_UPDATE_POLICY = ModelValidationPolicy(writable_fields=VENDOR_FIELDS)


@vendors_bp.get("")
def list_vendors_route():
    """
    Query parameters:
    - status: active (default), trashed or all
    - active_only: true to drop vendors flagged inactive
    """
    active_only = request.args.get("active_only", "false").lower() == "true"
    try:
        vendors = vendor_service.list_vendors(status=request.args.get("status", "active"), active_only=active_only)
        return jsonify({"items": [v.to_dict() for v in vendors], "count": len(vendors)})
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@vendors_bp.post("")
@require_actor
def create_vendor_route():
    """
    Request body:
    {
        "code": "acme",         // required, stored upper-cased
        "name": "Acme Books",   // required
        "contact_name": "...", "email": "...", "phone": "...", "address": "...",
        "is_active": true
    }
    """
    try:
        data = validate_payload(
            model=Vendor,
            payload=request.get_json(silent=True),
            policy=VENDOR_CREATE_POLICY,
            partial=False,
        )
        vendor = vendor_service.create_vendor(actor_id=g.actor_id, **data)
        return jsonify(vendor.to_dict()), 201
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.patch("/<int:vendor_id>")
@require_actor
def update_vendor_route(vendor_id: int):
    try:
        changes = validate_payload(
            model=Vendor,
            payload=request.get_json(silent=True),
            policy=VENDOR_UPDATE_POLICY,
            partial=True,
        )
        vendor = vendor_service.update_vendor(vendor_id, changes=changes, actor_id=g.actor_id)
        return jsonify(vendor.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update vendor %s", vendor_id)
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.delete("/<int:vendor_id>")
@require_actor
def delete_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.soft_delete_vendor(vendor_id, actor_id=g.actor_id)
        return jsonify(vendor.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code


@vendors_bp.patch("/<int:vendor_id>/restore")
@require_actor
def restore_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.restore_vendor(vendor_id, actor_id=g.actor_id)
        return jsonify(vendor.to_dict())
    except InventoryError as e:
        return jsonify({"error": str(e)}), e.status_code
