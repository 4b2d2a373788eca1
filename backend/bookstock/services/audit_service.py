# Overview: Append-only audit trail for ledger and procurement mutations.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import AuditEvent
"""
Audit trail invariants

- Append-only; no updates or deletes of existing events.
- Written inside the same transaction as the mutation it records, so a
  rolled-back mutation leaves no event behind.
- No domain logic here.
"""


def append_audit_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_id: str | None = None,
    location_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AuditEvent:
    ev = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        location_id=location_id,
        occurred_at=occurred_at,  # if None, column default applies
        note=note[:255] if note else None,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload else None,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_audit_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_type: str | None = None,
    location_id: int | None = None,
    limit: int = 100,
) -> list[AuditEvent]:
    """Newest first; limit is clamped to MAX_LIST_LIMIT."""
    max_limit = current_app.config.get("MAX_LIST_LIMIT", 200)
    limit = max(1, min(int(limit), max_limit))

    q = db.session.query(AuditEvent)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if event_type:
        q = q.filter(AuditEvent.event_type == event_type)
    if location_id is not None:
        q = q.filter(AuditEvent.location_id == location_id)

    return q.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc()).limit(limit).all()
