"""
Registry of per-user interactive sessions with expiry.

Sessions are process-local and keyed by user id: a restart loses them.
Expiry is enforced lazily on every access and by a periodic sweep.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionExpired(Exception):
    """Raised when a session is needed but missing or past its deadline."""
    pass


@dataclass
class SessionEntry(Generic[T]):
    """A stored session with its bookkeeping."""
    key: str
    value: T
    created_at: float
    expires_at: float

    def expired(self, now: float) -> bool:
        return now > self.expires_at


class SessionRegistry(Generic[T]):
    """
    One outstanding session per user.

    Starting a session for a user who already has one replaces it (last write
    wins); ``start`` reports whether that happened so callers can tell the user.
    """

    def __init__(self, timeout: float = 300.0, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            timeout: Seconds a session lives after it starts or is renewed
            clock: Time source, monotonic seconds
        """
        self.timeout = timeout
        self._clock = clock
        self._entries: Dict[str, SessionEntry[T]] = {}
        self._lock = asyncio.Lock()
        self._key_locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def key_lock(self, key: str) -> asyncio.Lock:
        """Lock serializing work on one user's session. Hold it across any await that reads then writes the session."""
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    def _release_key_lock(self, key: str) -> None:
        lock = self._key_locks.get(key)
        if lock is not None and not lock.locked():
            del self._key_locks[key]

    async def holds(self, key: str, value: T) -> bool:
        """True if ``value`` is still the live session stored under ``key``."""
        return await self.get(key) is value

    async def start(self, key: str, value: T) -> bool:
        """Store a new session. Returns True if an existing one was replaced."""
        async with self._lock:
            now = self._clock()
            previous = self._entries.get(key)
            replaced = previous is not None and not previous.expired(now)
            if replaced:
                logger.warning(f"Session for {key} replaced by a new one")
            self._entries[key] = SessionEntry(key=key, value=value, created_at=now, expires_at=now + self.timeout)
            return replaced

    async def get(self, key: str) -> Optional[T]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                logger.info(f"Session for {key} expired")
                return None
            return entry.value

    async def require(self, key: str) -> T:
        value = await self.get(key)
        if value is None:
            raise SessionExpired(f"No active session for {key}")
        return value

    async def renew(self, key: str, value: Optional[T] = None) -> bool:
        """Give a live session a fresh deadline. With ``value``, only if that session is still the stored one."""
        async with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is None or entry.expired(now):
                return False
            if value is not None and entry.value is not value:
                return False
            entry.expires_at = now + self.timeout
            return True

    async def pop(self, key: str) -> Optional[T]:
        """Remove and return a live session."""
        async with self._lock:
            entry = self._entries.pop(key, None)
            self._release_key_lock(key)
            if entry is None or entry.expired(self._clock()):
                return None
            return entry.value

    async def sweep(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expired(now)]
            for key in expired:
                del self._entries[key]
                self._release_key_lock(key)
        if expired:
            logger.debug(f"Swept {len(expired)} expired sessions")
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep forever; run as a background task and cancel on shutdown."""
        while True:
            await asyncio.sleep(interval)
            await self.sweep()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "active_sessions": len(self._entries),
            "timeout_seconds": self.timeout,
        }
