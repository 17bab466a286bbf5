# Overview: Serialization and retry helpers for every store mutation.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from flask import g
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# One writer at a time for the whole in-memory store. Re-entrant so a service
# running inside an already-serialized request does not deadlock on itself.
_store_lock = threading.RLock()


@contextmanager
def serialized():
    """Hold the process-wide store lock for the duration of the block."""
    with _store_lock:
        yield


def init_app(app) -> None:
    """
    Serialize each request against the store.

    The request's session is removed before the lock is released: with an
    in-memory database every session shares one connection, and closing a
    session rolls that connection back.
    """
    @app.before_request
    def _acquire_store_lock():
        _store_lock.acquire()
        g._store_locked = True

    @app.teardown_request
    def _release_store_lock(exc=None):
        if g.pop("_store_locked", False):
            try:
                db.session.remove()
            finally:
                _store_lock.release()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a unit of work under the store lock, retrying on concurrency
    failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on version_id columns).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            with _store_lock:
                return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            # Business-rule failures must not leave half-applied changes in the session
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
