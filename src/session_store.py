#!/usr/bin/env python3
"""
Session Store

Per-(user, casino) session state: a bounded sliding window of recent spins
and the running session RTP. Writes to one session are serialized by that
session's lock; unrelated sessions never contend beyond the brief map lookup.
"""

import logging
import threading
import time
import uuid
from typing import Dict, Iterable, List, Optional

from spin_models import RTPStats, SpinResult, WindowSnapshot

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SpinWindow:
    """
    Fixed-capacity ring buffer of spins.

    Slots are preallocated; ``head`` points at the oldest spin and ``count``
    tracks occupancy, so appending past capacity overwrites the oldest slot.
    Not thread-safe on its own; the owning session holds the lock.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._slots: List[Optional[SpinResult]] = [None] * capacity
        self._head = 0
        self._count = 0

    def append(self, spin: SpinResult) -> Optional[SpinResult]:
        """Add a spin, returning the evicted spin when the window was full."""
        if self._count < self.capacity:
            self._slots[(self._head + self._count) % self.capacity] = spin
            self._count += 1
            return None

        evicted = self._slots[self._head]
        self._slots[self._head] = spin
        self._head = (self._head + 1) % self.capacity
        return evicted

    def to_tuple(self):
        return tuple(self._slots[(self._head + i) % self.capacity] for i in range(self._count))

    def resize(self, capacity: int):
        """Change capacity, keeping the newest spins."""
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        spins = list(self.to_tuple()[-capacity:])
        self.capacity = capacity
        self._slots = spins + [None] * (capacity - len(spins))
        self._head = 0
        self._count = len(spins)

    def clear(self):
        self._slots = [None] * self.capacity
        self._head = 0
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __iter__(self):
        return iter(self.to_tuple())


class Session:
    """One owned, mutable record per session key."""

    def __init__(self, user_id: str, casino_id: str, window_size: int):
        self.session_id = f"{now_ms()}-{uuid.uuid4().hex[:7]}"
        self.user_id = user_id
        self.casino_id = casino_id
        self.window = SpinWindow(window_size)
        self.session_rtp = 0.0
        self.is_active = True
        self.started_at = now_ms()
        self.last_activity = self.started_at
        self.total_spins_seen = 0
        self._lock = threading.Lock()

    @property
    def key(self) -> str:
        return f"{self.user_id}:{self.casino_id}"

    @property
    def spins(self):
        with self._lock:
            return self.window.to_tuple()

    def append(self, spin: SpinResult) -> int:
        """Append under the session lock; returns the spin count seen so far."""
        with self._lock:
            self.window.append(spin)
            self.total_spins_seen += 1
            self.last_activity = now_ms()
            self._refresh_rtp()
            return self.total_spins_seen

    def snapshot(self) -> WindowSnapshot:
        with self._lock:
            return WindowSnapshot(self.window.to_tuple())

    def resize(self, window_size: int):
        with self._lock:
            self.window.resize(window_size)
            self._refresh_rtp()

    def set_active(self, active: bool):
        with self._lock:
            self.is_active = active
            self.last_activity = now_ms()

    def _refresh_rtp(self):
        # Recomputed from the window itself so it cannot drift from the spins held.
        self.session_rtp = RTPStats.from_spins(self.window.to_tuple()).observed_rtp

    def to_dict(self) -> Dict:
        with self._lock:
            return {
                'session_id': self.session_id,
                'user_id': self.user_id,
                'casino_id': self.casino_id,
                'spin_count': len(self.window),
                'total_spins_seen': self.total_spins_seen,
                'session_rtp': self.session_rtp,
                'is_active': self.is_active,
                'started_at': self.started_at,
                'last_activity': self.last_activity,
            }


class SessionStore:
    """
    Concurrent keyed store of sessions.

    The store lock only guards the key -> session map; spin appends take the
    per-session lock so ingestion for different keys runs in parallel.
    """

    def __init__(self, window_size: int = 50):
        self.window_size = window_size
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def get_or_create(self, spin: SpinResult) -> Session:
        key = spin.key
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = Session(spin.user_id, spin.casino_id, self.window_size)
                self._sessions[key] = session
                logger.info(f"Created session {session.session_id} for {key}")
            return session

    def record_spin(self, spin: SpinResult) -> Session:
        session = self.get_or_create(spin)
        session.append(spin)
        return session

    def record_spin_batch(self, spins: Iterable[SpinResult]) -> List[Session]:
        touched: Dict[str, Session] = {}
        for spin in spins:
            session = self.record_spin(spin)
            touched[session.key] = session
        return list(touched.values())

    def get_session(self, key: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(key)

    def snapshot(self, key: str) -> Optional[WindowSnapshot]:
        session = self.get_session(key)
        if session is None:
            return None
        return session.snapshot()

    def deactivate(self, key: str) -> bool:
        session = self.get_session(key)
        if session is None:
            return False
        session.set_active(False)
        logger.info(f"Session {session.session_id} for {key} ended")
        return True

    def reactivate(self, key: str) -> bool:
        session = self.get_session(key)
        if session is None:
            return False
        session.set_active(True)
        return True

    def clear_session(self, key: str) -> bool:
        with self._lock:
            return self._sessions.pop(key, None) is not None

    def clear_all(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        logger.info(f"Cleared {count} sessions")
        return count

    def resize_windows(self, window_size: int):
        with self._lock:
            self.window_size = window_size
            sessions = list(self._sessions.values())
        for session in sessions:
            session.resize(window_size)

    def session_keys(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def get_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __len__(self) -> int:
        return self.get_session_count()
