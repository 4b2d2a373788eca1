# Overview: Locking, retry and transaction helpers shared by every mutating service.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF", 0.1)
    return max(1, int(attempts)), float(backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locked database, deadlocks) and StaleDataError
    (optimistic version conflicts). Domain errors propagate on the first raise.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after %s (attempt %d of %d)", type(exc).__name__, attempt + 1, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))


def commit_with_retry(*, attempts: int | None = None, backoff_base: float | None = None):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


def run_atomically(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func inside one transaction: commit when it returns, roll back when it raises.

    func must not commit on its own. The whole unit is retried on lock and
    version conflicts, so it has to be safe to re-run from the top.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


class KeyedLocks:
    """
    In-process re-entrant locks, one per key.

    hold() acquires every requested key in sorted order, so two callers asking
    for the same pair of keys in opposite order cannot deadlock.

    Entries are reference-counted: a key's lock exists only while some thread
    holds or waits for it, so the map does not grow with every order, request
    or ledger key a long-lived process touches.
    """

    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        # key -> [RLock, holders + waiters]
        self._locks: dict = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key, *, release: bool) -> None:
        with self._guard:
            entry = self._locks[key]
            if release:
                entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys):
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._checkin(key, release=False)
                    raise
                acquired.append(key)
            yield ordered
        finally:
            for key in reversed(acquired):
                self._checkin(key, release=True)


# Ledger keys are (location_id, book_id)
stock_locks = KeyedLocks("stock")
order_locks = KeyedLocks("purchase_order")
request_locks = KeyedLocks("purchase_request")
