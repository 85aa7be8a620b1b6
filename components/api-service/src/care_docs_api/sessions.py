from __future__ import annotations

import time
import uuid
from threading import RLock
from typing import Dict, Tuple

from care_docs_api.lifecycle import EntryLifecycle

DEFAULT_SESSION_TTL_SECONDS = 4 * 60 * 60


class SessionRegistry:
    """In-memory map of open editing sessions.

    Each session owns one ``EntryLifecycle``. Sessions expire ``ttl_seconds``
    after their last access.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        self._ttl_seconds = ttl_seconds
        self._lock = RLock()
        self._sessions: Dict[str, Tuple[EntryLifecycle, float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, lifecycle: EntryLifecycle) -> str:
        self.cleanup_expired()
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = (lifecycle, time.time() + self._ttl_seconds)
        return session_id

    def get(self, session_id: str) -> EntryLifecycle:
        with self._lock:
            item = self._sessions.get(session_id)
            if item is None or item[1] <= time.time():
                self._sessions.pop(session_id, None)
                raise KeyError(f"Unknown session_id: {session_id}")
            lifecycle = item[0]
            self._sessions[session_id] = (lifecycle, time.time() + self._ttl_seconds)
            return lifecycle

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def cleanup_expired(self) -> int:
        now = time.time()
        with self._lock:
            expired = [
                sid
                for sid, (_, expires_at) in self._sessions.items()
                if expires_at <= now
            ]
            for session_id in expired:
                del self._sessions[session_id]
        return len(expired)
