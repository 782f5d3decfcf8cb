"""
Time-boxed in-memory snapshot cache.

Each cache holds at most one value together with the time it was stored.
Caches are created per detector/fetcher instance and can be given a fake
clock in tests.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """Cached value plus the timestamp it was stored at."""

    value: T
    timestamp: float


class SnapshotCache(Generic[T]):
    """
    Single-slot cache with a fixed time-to-live.

    Writes replace the whole snapshot; there is no locking, concurrent
    refills simply overwrite each other.

    Attributes:
        ttl_seconds: Lifetime of a snapshot.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"Invalid cache TTL: {ttl_seconds}. Must be positive.")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[Snapshot[T]] = None

    def get(self) -> Optional[T]:
        """Return the cached value if it is younger than the TTL."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        if self._clock() - snapshot.timestamp >= self.ttl_seconds:
            return None
        return snapshot.value

    def set(self, value: T) -> None:
        """Store a new snapshot stamped with the current time."""
        self._snapshot = Snapshot(value=value, timestamp=self._clock())

    def clear(self) -> None:
        """Drop the snapshot."""
        self._snapshot = None

    def age(self) -> Optional[float]:
        """Seconds since the snapshot was stored, or None when empty."""
        if self._snapshot is None:
            return None
        return self._clock() - self._snapshot.timestamp

    def info(self) -> dict[str, Any]:
        """Cache state for health and debug output."""
        age = self.age()
        return {
            "cached": self.get() is not None,
            "age_seconds": round(age, 1) if age is not None else None,
            "ttl_seconds": self.ttl_seconds,
        }
