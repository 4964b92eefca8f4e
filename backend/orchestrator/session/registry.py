from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from threading import Lock

from orchestrator.session.factory import RelayBundle
from orchestrator.session.machine import InterviewSession


@dataclass
class SessionEntry:
    session: InterviewSession
    relay: RelayBundle | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    active: bool = True


class SessionRegistry:
    """
    Live sessions by id. Entries are marked inactive when their socket goes
    away and dropped by the cleanup loop once idle past the TTL.
    """

    def __init__(self):
        self._lock = Lock()
        self._entries: dict[str, SessionEntry] = {}

    def register(self, session: InterviewSession, relay: RelayBundle | None = None) -> SessionEntry:
        entry = SessionEntry(session=session, relay=relay)
        with self._lock:
            self._entries[session.session_id] = entry
        return replace(entry)

    def _update(self, session_id: str, **changes) -> None:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return
            for name, value in changes.items():
                setattr(entry, name, value)
            entry.updated_at = time.time()

    def touch(self, session_id: str) -> None:
        self._update(session_id)

    def mark_inactive(self, session_id: str) -> None:
        self._update(session_id, active=False)

    def get(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            entry = self._entries.get(session_id)
            return replace(entry) if entry else None

    def get_session(self, session_id: str) -> InterviewSession | None:
        entry = self.get(session_id)
        return entry.session if entry else None

    def cleanup_inactive(self, ttl_sec: float) -> int:
        cutoff = time.time() - max(30.0, float(ttl_sec or 900.0))
        with self._lock:
            stale = [
                session_id
                for session_id, entry in self._entries.items()
                if not entry.active and entry.updated_at <= cutoff
            ]
            for session_id in stale:
                self._entries.pop(session_id, None)
        return len(stale)


session_registry = SessionRegistry()
