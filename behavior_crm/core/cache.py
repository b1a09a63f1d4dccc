"""
Explicit key/value cache with per-entry expiry.

Owned by the identity resolver for auth-subject -> user id lookups. The clock
is injectable so tests can move time forward without sleeping.
"""

import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

V = TypeVar('V')


class TTLCache(Generic[V]):
    """
    In-process cache where every entry expires ``ttl_seconds`` after it is set.

    Args:
        ttl_seconds: Default lifetime of an entry.
        clock: Returns the current time in seconds. Defaults to time.monotonic.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[V, float]] = {}

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (value, self._clock() + ttl)

    def expire(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
