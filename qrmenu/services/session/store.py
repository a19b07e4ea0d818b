"""
Guest Session Store

Keeps the diner's anonymous per-shop identity on the device. A session is
created when the diner first enters a name for a shop, survives restarts
through a durable key-value store, and expires a fixed time after creation.

Expiry is lazy: nothing sweeps the store in the background. Whoever loads
an expired (or unreadable) entry purges it and gets None back.

Persisted record (one per shop, JSON encoded):
    {"sessionId": str, "displayName": str, "contact": str, "createdAt": epoch-ms}

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional, Union

from filelock import FileLock

from qrmenu.core.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=2)
DEFAULT_KEY_PREFIX = "qr-menu-session-"


# =============================================================================
# KEY-VALUE PERSISTENCE
# =============================================================================

class KeyValueStore(ABC):
    """Durable string key-value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, lost on exit. Used in tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore(KeyValueStore):
    """
    JSON file store with file locking.

    Several processes on the same device (e.g. two diner clients) can share
    one file; every read-modify-write happens under the lock.
    """

    def __init__(self, path: Union[str, Path], lock_timeout: float = 10):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def _ensure_dir(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created session directory: {self.path.parent}")

    def _lock(self) -> FileLock:
        self._ensure_dir()
        return FileLock(str(self.lock_path), timeout=self.lock_timeout)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            logger.warning(f"Unreadable session file {self.path}, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Unexpected session file contents in {self.path}, starting empty")
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock():
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock():
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock():
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


# =============================================================================
# GUEST SESSION
# =============================================================================

@dataclass(frozen=True)
class GuestSession:
    """
    Anonymous diner identity for one shop.

    Attributes:
        session_id: Random unique id, attached to every order
        display_name: Name (or table) staff use to match the order
        contact: Optional phone number or other contact
        created_at_ms: Creation time, epoch milliseconds
    """
    session_id: str
    display_name: str
    contact: Optional[str]
    created_at_ms: int

    def expires_at_ms(self, ttl: timedelta) -> int:
        return self.created_at_ms + int(ttl.total_seconds() * 1000)

    def to_record(self) -> dict:
        """Convert to the persisted record."""
        return {
            "sessionId": self.session_id,
            "displayName": self.display_name,
            "contact": self.contact or "",
            "createdAt": self.created_at_ms,
        }

    @classmethod
    def from_record(cls, record: dict) -> "GuestSession":
        """
        Build a session from a persisted record.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(record, dict):
            raise ValueError("Session record must be an object")

        session_id = record.get("sessionId")
        display_name = record.get("displayName")
        created_at = record.get("createdAt")

        if not isinstance(session_id, str) or not session_id:
            raise ValueError("Session record has no sessionId")
        if not isinstance(display_name, str) or not display_name.strip():
            raise ValueError("Session record has no displayName")
        if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
            raise ValueError("Session record has no createdAt")

        contact = record.get("contact")
        return cls(
            session_id=session_id,
            display_name=display_name,
            contact=contact or None,
            created_at_ms=int(created_at),
        )


class SessionStore:
    """
    Loads, creates and clears guest sessions, one per shop.

    Attributes:
        ttl: Session lifetime measured from creation

    Example:
        >>> store = SessionStore(MemoryKeyValueStore(), clock=ManualClock())
        >>> session = store.create("shop-1", "Table 4", "555-0100")
        >>> store.load("shop-1") == session
        True
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        self._store = store
        self._clock = clock or SystemClock()
        self.ttl = ttl
        self.key_prefix = key_prefix

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl.total_seconds() * 1000)

    def key_for(self, shop_id: str) -> str:
        return f"{self.key_prefix}{shop_id}"

    def load(self, shop_id: str) -> Optional[GuestSession]:
        """
        Return the active session for a shop, or None.

        Expired, corrupt, or undated entries are removed from the store.
        """
        key = self.key_for(shop_id)
        raw = self._store.get(key)
        if raw is None:
            return None

        try:
            session = GuestSession.from_record(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable session for shop {shop_id}: {e}")
            self._store.delete(key)
            return None

        if not self.is_active(session):
            logger.info(f"Session {session.session_id} for shop {shop_id} expired")
            self._store.delete(key)
            return None

        return session

    def create(
        self,
        shop_id: str,
        display_name: str,
        contact: Optional[str] = None,
    ) -> GuestSession:
        """
        Start a new session for a shop, replacing any existing one.

        Raises:
            ValueError: If display_name is blank
        """
        name = (display_name or "").strip()
        if not name:
            raise ValueError("A name is required to start ordering")

        session = GuestSession(
            session_id=str(uuid.uuid4()),
            display_name=name,
            contact=(contact or "").strip() or None,
            created_at_ms=self._clock.now_ms(),
        )
        self._store.set(self.key_for(shop_id), json.dumps(session.to_record()))

        logger.info(f"Session {session.session_id} started for shop {shop_id}")
        return session

    def clear(self, shop_id: str) -> None:
        """Remove the shop's session unconditionally."""
        self._store.delete(self.key_for(shop_id))
        logger.debug(f"Session cleared for shop {shop_id}")

    def is_active(self, session: GuestSession) -> bool:
        # createdAt of 0 means the record predates timestamps; treat as expired
        if session.created_at_ms <= 0:
            return False
        return self._clock.now_ms() - session.created_at_ms < self.ttl_ms

    def expires_at_ms(self, session: GuestSession) -> int:
        return session.expires_at_ms(self.ttl)

    def remaining(self, session: GuestSession) -> timedelta:
        """Time left before expiry, never negative. Display only."""
        left_ms = self.expires_at_ms(session) - self._clock.now_ms()
        return timedelta(milliseconds=max(0, left_ms))
