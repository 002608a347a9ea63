# Overview: Service-layer concurrency helpers; retry on transient DB failures and per-day commit locks.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import date

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 2, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locked database, deadlocks) and StaleDataError
    (optimistic locking conflicts). The default of two attempts means one retry.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class DayLocks:
    """
    Advisory lock per (org, team, business day).

    Serializes the duplicate check and the write for one day inside this
    process; the unique constraint on sales_records covers other processes.
    A day's lock exists only while someone holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[int, str, date], threading.Lock] = {}
        self._holders: dict[tuple[int, str, date], int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_slot(self, key) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._holders[key] = self._holders.get(key, 0) + 1
            return lock

    def _release_slot(self, key) -> None:
        with self._guard:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, org_id: int, team_id: str, day: date):
        key = (org_id, team_id, day)
        lock = self._acquire_slot(key)
        try:
            with lock:
                yield
        finally:
            self._release_slot(key)


day_locks = DayLocks()
