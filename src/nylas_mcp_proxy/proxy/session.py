"""Per-proxy mutable state shared between the stdio loop and the transport.

Each proxy owns one SessionState, so several proxies can live in one
process (tests rely on this).
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from nylas_mcp_proxy.grants.models import GrantStore


class RWLock:
    """Reader/writer lock: many readers or one writer.

    Waiting writers block new readers so a steady read load cannot starve
    the session id update.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SessionState:
    """Upstream session id, default grant and grant store.

    The default grant and store are set once at startup; the session id is
    overwritten whenever the upstream server hands out a new one. Readers get
    a snapshot, which may be stale by the time they use it.
    """

    def __init__(self) -> None:
        self._lock = RWLock()
        self._session_id: str | None = None
        self._default_grant_id: str | None = None
        self._grant_store: GrantStore | None = None

    @property
    def session_id(self) -> str | None:
        with self._lock.read_locked():
            return self._session_id

    def set_session_id(self, session_id: str) -> None:
        with self._lock.write_locked():
            self._session_id = session_id

    @property
    def default_grant_id(self) -> str | None:
        with self._lock.read_locked():
            return self._default_grant_id

    def set_default_grant(self, grant_id: str | None) -> None:
        with self._lock.write_locked():
            self._default_grant_id = grant_id or None

    @property
    def grant_store(self) -> GrantStore | None:
        with self._lock.read_locked():
            return self._grant_store

    def set_grant_store(self, store: GrantStore | None) -> None:
        with self._lock.write_locked():
            self._grant_store = store

    def snapshot(self) -> tuple[str | None, str | None, GrantStore | None]:
        """Return (session_id, default_grant_id, grant_store) under one read lock."""
        with self._lock.read_locked():
            return self._session_id, self._default_grant_id, self._grant_store
