# Overview: Vendor registry; vendors are referenced by purchase orders only.

"""
Vendor Service

Vendor codes are stored upper-cased and are unique among live vendors.
A vendor must be active and out of the bin before new purchase orders can be
placed with it; existing orders keep their vendor regardless.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateCodeError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Vendor
from ..models.registry import RECORD_ACTIVE, RECORD_TRASHED
from ..time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_atomically

EDITABLE_FIELDS = ("name", "contact_name", "email", "phone", "address", "is_active")

LIST_FILTERS = ("active", "trashed", "all")


def _normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _ensure_code_free(code: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Vendor).filter(Vendor.code == code, Vendor.record_state == RECORD_ACTIVE)
    if exclude_id is not None:
        q = q.filter(Vendor.id != exclude_id)
    if q.first():
        raise DuplicateCodeError(f"Vendor code '{code}' already exists")


def _flush_live_code(code: str) -> None:
    """Flush a vendor claiming a live code; a concurrent claim loses to the unique index."""
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise DuplicateCodeError(f"Vendor code '{code}' already exists") from exc


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def get_orderable_vendor(vendor_id: int) -> Vendor:
    """Vendor that can take a new purchase order: exists, active, not in bin."""
    vendor = get_vendor(vendor_id)
    if vendor.is_trashed or not vendor.is_active:
        raise ValidationError("Vendor not found or inactive")
    return vendor


def create_vendor(*, code: str, name: str, actor_id: str | None = None, **details) -> Vendor:
    code = _normalize_code(code)
    name = (name or "").strip()
    if not code:
        raise ValidationError("code is required")
    if not name:
        raise ValidationError("name is required")
    unknown = set(details) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    def _op():
        _ensure_code_free(code)
        vendor = Vendor(code=code, name=name, **details)
        db.session.add(vendor)
        _flush_live_code(code)

        append_audit_event(
            event_type="vendor.created",
            entity_type="vendor",
            entity_id=vendor.id,
            actor_id=actor_id,
            payload={"code": code},
        )
        return vendor

    vendor = run_atomically(_op)
    current_app.logger.info("Vendor created id=%s code=%s", vendor.id, vendor.code)
    return vendor


def update_vendor(vendor_id: int, *, changes: dict, actor_id: str | None = None) -> Vendor:
    """
    Patch contact details, name or code.

    Unlike location codes, a vendor code may be changed while it stays unique.
    """
    changes = dict(changes or {})
    new_code = changes.pop("code", None)
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("name cannot be blank")

    def _op():
        get_vendor(vendor_id)
        vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).one()
        if vendor.is_trashed:
            raise ValidationError("Cannot update a vendor in bin")

        if new_code is not None:
            code = _normalize_code(new_code)
            if not code:
                raise ValidationError("code cannot be blank")
            if code != vendor.code:
                _ensure_code_free(code, exclude_id=vendor.id)
                vendor.code = code
                _flush_live_code(code)

        for key, value in changes.items():
            setattr(vendor, key, value.strip() if isinstance(value, str) else value)

        append_audit_event(
            event_type="vendor.updated",
            entity_type="vendor",
            entity_id=vendor.id,
            actor_id=actor_id,
            payload={"fields": sorted(changes) + (["code"] if new_code is not None else [])},
        )
        return vendor

    return run_atomically(_op)


def soft_delete_vendor(vendor_id: int, *, actor_id: str | None = None) -> Vendor:
    def _op():
        get_vendor(vendor_id)
        vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).one()
        if vendor.is_trashed:
            raise ValidationError(f"Vendor {vendor.id} is already in bin")
        vendor.record_state = RECORD_TRASHED
        vendor.deleted_at = utcnow()
        append_audit_event(
            event_type="vendor.trashed",
            entity_type="vendor",
            entity_id=vendor.id,
            actor_id=actor_id,
        )
        return vendor

    vendor = run_atomically(_op)
    current_app.logger.info("Vendor id=%s moved to bin", vendor.id)
    return vendor


def restore_vendor(vendor_id: int, *, actor_id: str | None = None) -> Vendor:
    def _op():
        get_vendor(vendor_id)
        vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).one()
        if not vendor.is_trashed:
            raise ValidationError(f"Vendor {vendor.id} is not in bin")
        _ensure_code_free(vendor.code, exclude_id=vendor.id)
        vendor.record_state = RECORD_ACTIVE
        vendor.deleted_at = None
        _flush_live_code(vendor.code)
        append_audit_event(
            event_type="vendor.restored",
            entity_type="vendor",
            entity_id=vendor.id,
            actor_id=actor_id,
        )
        return vendor

    vendor = run_atomically(_op)
    current_app.logger.info("Vendor id=%s restored", vendor.id)
    return vendor


def list_vendors(*, status: str = "active", active_only: bool = False) -> list[Vendor]:
    status = (status or "active").lower()
    if status not in LIST_FILTERS:
        raise ValidationError(f"status must be one of {', '.join(LIST_FILTERS)}")

    q = db.session.query(Vendor)
    if status == "active":
        q = q.filter(Vendor.record_state == RECORD_ACTIVE)
    elif status == "trashed":
        q = q.filter(Vendor.record_state == RECORD_TRASHED)
    if active_only:
        q = q.filter(Vendor.is_active.is_(True))

    return q.order_by(
        Vendor.record_state.asc(),
        Vendor.is_active.desc(),
        Vendor.name.asc(),
        Vendor.id.asc(),
    ).all()
