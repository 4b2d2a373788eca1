# Overview: Low-stock alert monitor, derived eagerly from ledger mutations.

"""
Alert monitor

For a (location_id, book_id) key, after every committed ledger mutation:
- quantity <= threshold and no OPEN alert  -> open one (snapshot quantity/threshold)
- quantity >  threshold and an OPEN alert  -> resolve it, stamping resolved_at
- OPEN alert and still low                 -> leave it alone (no duplicate, no update)

Refreshes run in their own transaction after the ledger commit. A failure
here never rolls back the ledger; it is logged, and `flask alerts refresh`
recomputes every key from current quantities.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Location, LowStockAlert, StockRecord
from ..models.registry import RECORD_ACTIVE
from ..models.stock import ALERT_STATUS_OPEN, ALERT_STATUS_RESOLVED, ALERT_STATUSES
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_atomically, stock_locks

ALERT_OPENED = "opened"
ALERT_RESOLVED = "resolved"


def _evaluate(location_id: int, book_id: int) -> str | None:
    record = db.session.query(StockRecord).filter_by(location_id=location_id, book_id=book_id).first()
    if record is None:
        return None

    open_alert = lock_for_update(
        db.session.query(LowStockAlert).filter_by(
            location_id=location_id, book_id=book_id, status=ALERT_STATUS_OPEN
        )
    ).first()

    if record.quantity <= record.low_stock_threshold:
        if open_alert is not None:
            return None
        db.session.add(
            LowStockAlert(
                location_id=location_id,
                location_kind=record.location_kind,
                book_id=book_id,
                status=ALERT_STATUS_OPEN,
                quantity=record.quantity,
                threshold=record.low_stock_threshold,
            )
        )
        db.session.flush()
        return ALERT_OPENED

    if open_alert is not None:
        open_alert.status = ALERT_STATUS_RESOLVED
        open_alert.resolved_at = utcnow()
        db.session.flush()
        return ALERT_RESOLVED
    return None


def refresh_low_stock_alert(location_id: int, book_id: int) -> str | None:
    """
    Re-evaluate one key and commit. Returns "opened", "resolved" or None.

    Idempotent: running it twice in a row changes nothing the second time.
    """
    outcome = run_atomically(lambda: _evaluate(location_id, book_id))
    if outcome:
        current_app.logger.info("Low-stock alert %s location_id=%s book_id=%s", outcome, location_id, book_id)
    return outcome


def refresh_alerts(keys: Iterable[tuple[int, int]]) -> dict:
    """
    Best-effort refresh after a ledger commit.

    Failures are logged per key and reported in the result instead of raised,
    so the ledger mutation that triggered the refresh stands.
    """
    result = {"opened": 0, "resolved": 0, "failed": []}
    for location_id, book_id in sorted(set(keys)):
        try:
            outcome = refresh_low_stock_alert(location_id, book_id)
        except Exception:
            current_app.logger.exception(
                "Low-stock alert refresh failed location_id=%s book_id=%s", location_id, book_id
            )
            result["failed"].append((location_id, book_id))
            continue
        if outcome == ALERT_OPENED:
            result["opened"] += 1
        elif outcome == ALERT_RESOLVED:
            result["resolved"] += 1
    return result


def recompute_all_alerts() -> dict:
    """Refresh every ledger key; the retry path for refreshes that failed earlier."""
    keys = [
        (location_id, book_id)
        for location_id, book_id in db.session.query(StockRecord.location_id, StockRecord.book_id).all()
    ]
    result = {"opened": 0, "resolved": 0, "failed": []}
    # Same key lock as ledger mutations, so a recompute never interleaves with one
    for key in keys:
        with stock_locks.hold(key):
            partial = refresh_alerts([key])
        result["opened"] += partial["opened"]
        result["resolved"] += partial["resolved"]
        result["failed"].extend(partial["failed"])
    result["checked"] = len(keys)
    if result["failed"]:
        current_app.logger.warning("Alert recompute left %d keys unrefreshed", len(result["failed"]))
    return result


def list_alerts(*, status: str | None = ALERT_STATUS_OPEN, limit: int | None = None) -> list[LowStockAlert]:
    """
    Alerts for live locations, newest first.

    status=None or "ALL" returns both states.
    """
    if limit is None:
        limit = current_app.config.get("ALERT_LIST_LIMIT", 100)
    limit = max(1, min(int(limit), current_app.config.get("MAX_LIST_LIMIT", 200)))

    q = (
        db.session.query(LowStockAlert)
        .join(Location, Location.id == LowStockAlert.location_id)
        .filter(Location.record_state == RECORD_ACTIVE)
    )
    if status is not None:
        status = status.upper()
        if status != "ALL":
            if status not in ALERT_STATUSES:
                raise ValidationError(f"status must be one of {', '.join(ALERT_STATUSES)} or ALL")
            q = q.filter(LowStockAlert.status == status)

    return q.order_by(LowStockAlert.created_at.desc(), LowStockAlert.id.desc()).limit(limit).all()
