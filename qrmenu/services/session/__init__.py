"""
Session Store Factory

Returns the device's guest session store, persisted to the file named by
SESSION_STORE_PATH.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import timedelta
from functools import lru_cache

from qrmenu.core.clock import SystemClock
from qrmenu.core.config import get_settings
from qrmenu.services.session.store import (
    FileKeyValueStore,
    GuestSession,
    KeyValueStore,
    MemoryKeyValueStore,
    SessionStore,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_session_store() -> SessionStore:
    """Get the configured guest session store."""
    settings = get_settings()

    logger.info(f"Session Store: Using FileKeyValueStore ({settings.session_store_path})")
    return SessionStore(
        store=FileKeyValueStore(
            settings.session_store_path,
            lock_timeout=settings.session_lock_timeout,
        ),
        clock=SystemClock(),
        ttl=timedelta(milliseconds=settings.session_ttl_ms),
        key_prefix=settings.session_key_prefix,
    )


def reset_session_store() -> None:
    """Clear the cached store instance."""
    get_session_store.cache_clear()


__all__ = [
    "get_session_store",
    "reset_session_store",
    "FileKeyValueStore",
    "GuestSession",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SessionStore",
]
