# Overview: Warehouse and store registry with bin (soft-delete) semantics.

"""
Location registry

- Warehouses and stores share one table, told apart by kind.
- code is unique among live rows of the same kind and immutable once set.
- Trashing a location keeps its stock rows; they drop out of ledger listings
  and show up only through stock_service.list_orphaned_stock().
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateCodeError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Location
from ..models.registry import LOCATION_KINDS, RECORD_ACTIVE, RECORD_TRASHED
from ..time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_atomically

# Columns a caller may edit after creation
EDITABLE_FIELDS = ("name", "address", "city", "region", "phone", "email", "is_active")

LIST_FILTERS = ("active", "trashed", "all")


def _check_kind(kind: str | None) -> None:
    if kind is not None and kind not in LOCATION_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(LOCATION_KINDS)}")


def _ensure_code_free(kind: str, code: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Location).filter(
        Location.kind == kind,
        Location.code == code,
        Location.record_state == RECORD_ACTIVE,
    )
    if exclude_id is not None:
        q = q.filter(Location.id != exclude_id)
    if q.first():
        raise DuplicateCodeError(f"{kind.title()} code '{code}' already exists")


def _flush_live_code(kind: str, code: str) -> None:
    """
    Flush a row that claims a live code.

    _ensure_code_free() is a read; a concurrent writer can still take the code
    first, and the partial unique index then rejects this row.
    """
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise DuplicateCodeError(f"{kind.title()} code '{code}' already exists") from exc


def get_location(location_id: int, *, kind: str | None = None) -> Location:
    """Lookup by id; trashed rows are still returned. kind narrows the match."""
    _check_kind(kind)
    location = db.session.get(Location, location_id)
    if not location or (kind is not None and location.kind != kind):
        label = kind.title() if kind else "Location"
        raise NotFoundError(f"{label} {location_id} not found")
    return location


def create_location(*, kind: str, code: str, name: str, actor_id: str | None = None, **details) -> Location:
    _check_kind(kind)
    code = (code or "").strip()
    name = (name or "").strip()
    if not code:
        raise ValidationError("code is required")
    if not name:
        raise ValidationError("name is required")
    unknown = set(details) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    def _op():
        _ensure_code_free(kind, code)
        location = Location(kind=kind, code=code, name=name, **details)
        db.session.add(location)
        _flush_live_code(kind, code)

        append_audit_event(
            event_type="location.created",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            location_id=location.id,
            payload={"kind": kind, "code": code},
        )
        return location

    location = run_atomically(_op)
    current_app.logger.info("%s created id=%s code=%s", kind.title(), location.id, location.code)
    return location


def update_location(location_id: int, *, changes: dict, kind: str | None = None, actor_id: str | None = None) -> Location:
    """
    Patch editable fields.

    Raises ValidationError when the location is in the bin, when code is sent
    with a different value, or when a field is not editable.
    """
    changes = dict(changes or {})
    new_code = changes.pop("code", None)
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("name cannot be blank")

    def _op():
        location = get_location(location_id, kind=kind)
        location = lock_for_update(db.session.query(Location).filter_by(id=location.id)).one()
        if location.is_trashed:
            raise ValidationError(f"Cannot update a {location.kind.lower()} in bin")
        if new_code is not None and new_code.strip() != location.code:
            raise ValidationError("code cannot be changed once assigned")

        for key, value in changes.items():
            setattr(location, key, value.strip() if isinstance(value, str) else value)

        append_audit_event(
            event_type="location.updated",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            location_id=location.id,
            payload={"fields": sorted(changes)},
        )
        return location

    return run_atomically(_op)


def soft_delete_location(location_id: int, *, kind: str | None = None, actor_id: str | None = None) -> Location:
    def _op():
        location = get_location(location_id, kind=kind)
        location = lock_for_update(db.session.query(Location).filter_by(id=location.id)).one()
        if location.is_trashed:
            raise ValidationError(f"{location.kind.title()} {location.id} is already in bin")

        location.record_state = RECORD_TRASHED
        location.deleted_at = utcnow()

        append_audit_event(
            event_type="location.trashed",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            location_id=location.id,
        )
        return location

    location = run_atomically(_op)
    current_app.logger.info("%s id=%s moved to bin", location.kind.title(), location.id)
    return location


def restore_location(location_id: int, *, kind: str | None = None, actor_id: str | None = None) -> Location:
    """Bring a location back from the bin; is_active is left as it was."""
    def _op():
        location = get_location(location_id, kind=kind)
        location = lock_for_update(db.session.query(Location).filter_by(id=location.id)).one()
        if not location.is_trashed:
            raise ValidationError(f"{location.kind.title()} {location.id} is not in bin")
        _ensure_code_free(location.kind, location.code, exclude_id=location.id)

        location.record_state = RECORD_ACTIVE
        location.deleted_at = None
        _flush_live_code(location.kind, location.code)

        append_audit_event(
            event_type="location.restored",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            location_id=location.id,
        )
        return location

    location = run_atomically(_op)
    current_app.logger.info("%s id=%s restored", location.kind.title(), location.id)
    return location


def list_locations(*, kind: str | None = None, status: str = "active") -> list[Location]:
    """
    status: active | trashed | all.

    Ordered live-first, then operationally active first, then by name.
    """
    _check_kind(kind)
    status = (status or "active").lower()
    if status not in LIST_FILTERS:
        raise ValidationError(f"status must be one of {', '.join(LIST_FILTERS)}")

    q = db.session.query(Location)
    if kind:
        q = q.filter(Location.kind == kind)
    if status == "active":
        q = q.filter(Location.record_state == RECORD_ACTIVE)
    elif status == "trashed":
        q = q.filter(Location.record_state == RECORD_TRASHED)

    # 'ACTIVE' sorts before 'TRASHED'
    return q.order_by(
        Location.record_state.asc(),
        Location.is_active.desc(),
        Location.name.asc(),
        Location.id.asc(),
    ).all()
