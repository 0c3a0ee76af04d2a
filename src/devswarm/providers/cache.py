"""
Availability cache for inference tiers.
"""

from __future__ import annotations

import time
from collections.abc import Callable


class ModelAvailabilityCache:
    """
    Remembers whether a tier was reachable, for ``ttl_seconds``.

    Instances are injected where needed; nothing here is global.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[bool, float]] = {}

    def get(self, key: str) -> bool | None:
        """Cached availability, or None when unknown or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        available, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return available

    def set(self, key: str, available: bool) -> None:
        self._entries[key] = (available, self._clock())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
