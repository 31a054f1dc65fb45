#!/usr/bin/env python3
"""
In-memory Client Registry and Liveness Tracking

This module provides:
- ClientRecord: immutable snapshot of one live registration
- ReadWriteLock: shared-reader / exclusive-writer lock guarding the registry
- ClientRegistry: the registry itself (register, heartbeat, unregister,
  snapshot, expire_stale)
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..errors import AlreadyRegistered, InvalidIdentifier, InvalidPort, NotFound
from ..names import canonicalize, validate_identifier


MIN_PORT = 1
MAX_PORT = 65535


def format_timestamp(ts: float) -> str:
    """Format epoch seconds as an RFC 3339 UTC timestamp."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ClientRecord:
    """One live registration. Heartbeats replace the record, never mutate it."""
    canonical_id: str
    display_name: str
    port: int
    last_heartbeat: float

    def hostname(self, domain: str = "localhost") -> str:
        return f"{self.display_name}.{domain}"

    def to_dict(self, domain: str = "localhost") -> Dict[str, Any]:
        """Convert to the JSON shape served by ``GET /clients``."""
        return {
            "id": self.canonical_id,
            "domain": self.hostname(domain),
            "port": self.port,
            "last_heartbeat": format_timestamp(self.last_heartbeat),
        }


def _valid_port(port) -> bool:
    # bool is an int subclass; JSON true must not register port 1
    if isinstance(port, bool) or not isinstance(port, int):
        return False
    return MIN_PORT <= port <= MAX_PORT


# ---------------------------------------------------------------------------
# Reader/writer lock
# ---------------------------------------------------------------------------

class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of listing calls
    cannot starve heartbeats and registrations.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ClientRegistry:
    """Thread-safe, dict-backed registry of live clients keyed by canonical id."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._lock = ReadWriteLock()
        self._clients: Dict[str, ClientRecord] = {}
        self._clock = clock

    def register(self, display_name: str, port: int) -> ClientRecord:
        """Add a client. Registration is not an upsert."""
        if not validate_identifier(display_name):
            raise InvalidIdentifier()
        if not _valid_port(port):
            raise InvalidPort()

        cid = canonicalize(display_name)
        with self._lock.write_locked():
            if cid in self._clients:
                raise AlreadyRegistered()
            record = ClientRecord(
                canonical_id=cid,
                display_name=display_name,
                port=port,
                last_heartbeat=self._clock(),
            )
            self._clients[cid] = record
        return record

    def heartbeat(self, identifier: str) -> ClientRecord:
        cid = canonicalize(identifier)
        with self._lock.write_locked():
            record = self._clients.get(cid)
            if record is None:
                raise NotFound()
            record = replace(record, last_heartbeat=self._clock())
            self._clients[cid] = record
        return record

    def unregister(self, identifier: str) -> ClientRecord:
        with self._lock.write_locked():
            record = self._clients.pop(canonicalize(identifier), None)
        if record is None:
            raise NotFound()
        return record

    def get(self, identifier: str) -> Optional[ClientRecord]:
        with self._lock.read_locked():
            return self._clients.get(canonicalize(identifier))

    def snapshot(self) -> List[ClientRecord]:
        """Return every live record, ordered by canonical id."""
        with self._lock.read_locked():
            records = list(self._clients.values())
        return sorted(records, key=lambda r: r.canonical_id)

    def count(self) -> int:
        with self._lock.read_locked():
            return len(self._clients)

    def __len__(self) -> int:
        return self.count()

    def expire_stale(self, timeout: float, now: Optional[float] = None) -> List[str]:
        """Remove every client whose last heartbeat is older than *timeout*.

        Returns the evicted canonical ids, sorted.
        """
        with self._lock.write_locked():
            if now is None:
                now = self._clock()
            expired = [
                cid for cid, record in self._clients.items()
                if now - record.last_heartbeat > timeout
            ]
            for cid in expired:
                del self._clients[cid]
        return sorted(expired)
