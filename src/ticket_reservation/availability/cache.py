# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot cache for derived availability.

Provides TTL-bounded, LRU-evicted storage of AvailabilitySnapshots with
per-key versions, so a snapshot recomputed concurrently with a state
change is never written back over the newer state.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..observability.constants import (
    AVAILABILITY_CACHE_EVICTIONS_TOTAL,
    AVAILABILITY_CACHE_HITS_TOTAL,
    AVAILABILITY_CACHE_MISSES_TOTAL,
    AVAILABILITY_INVALIDATIONS_TOTAL,
    AVAILABILITY_VERSION_CONFLICTS_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from ..types.availability import AvailabilityKey, AvailabilitySnapshot

logger = logging.getLogger(__name__)  # ticket_reservation.availability.cache


@dataclass
class CacheMetrics:
    """Snapshot cache metrics."""

    cache_hits: int = 0
    cache_misses: int = 0
    cache_evictions: int = 0
    invalidations: int = 0
    version_conflicts: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total > 0 else 0.0


@dataclass(frozen=True)
class _CachedSnapshot:
    snapshot: AvailabilitySnapshot
    stored_at: float


class SnapshotCache:
    """
    TTL + LRU cache of availability snapshots keyed by (event, ticket type).

    Reads are lock-free; writes go through an asyncio.Lock. Entries are
    replaced copy-on-write, so a reader sees either the old or the new
    snapshot, never a partial update.

    Every write that changes what a key's snapshot should be (``patch``,
    ``invalidate``, ``clear``) bumps that key's version. ``set`` only
    stores a snapshot when the version it was computed against is still
    current.
    """

    def __init__(
        self,
        ttl: float,
        max_size: int,
        metrics_collector: MetricsCollectorProtocol | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock

        # OrderedDict gives O(1) LRU eviction: least recently used first
        self._entries: OrderedDict[AvailabilityKey, _CachedSnapshot] = OrderedDict()
        self._versions: dict[AvailabilityKey, int] = {}

        self._lock = asyncio.Lock()

        # Dedicated lock for thread-safe metrics updates
        self._metrics_lock = threading.Lock()
        self.metrics = CacheMetrics()
        self._metrics_collector = metrics_collector

    def _is_fresh(self, entry: _CachedSnapshot) -> bool:
        return self._clock() - entry.stored_at < self.ttl

    def _record(self, field_name: str, metric_name: str) -> None:
        with self._metrics_lock:
            setattr(self.metrics, field_name, getattr(self.metrics, field_name) + 1)
        if self._metrics_collector:
            self._metrics_collector.inc_counter(metric_name)

    def version(self, key: AvailabilityKey) -> int:
        """Current version of ``key``; capture it before recomputing."""
        return self._versions.get(key, 0)

    def _bump(self, key: AvailabilityKey) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    async def get(self, key: AvailabilityKey) -> AvailabilitySnapshot | None:
        """Return a fresh snapshot for ``key``, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            self._record("cache_hits", AVAILABILITY_CACHE_HITS_TOTAL)
            if key in self._entries:
                self._entries.move_to_end(key)
            return entry.snapshot
        self._record("cache_misses", AVAILABILITY_CACHE_MISSES_TOTAL)
        return None

    async def get_stale(self, key: AvailabilityKey) -> AvailabilitySnapshot | None:
        """Return the last stored snapshot regardless of age."""
        entry = self._entries.get(key)
        return entry.snapshot if entry is not None else None

    async def set(self, snapshot: AvailabilitySnapshot, expected_version: int) -> bool:
        """
        Store ``snapshot`` if its key is still at ``expected_version``.

        Returns:
            True if stored, False if the key changed since the snapshot
            was computed.
        """
        key = snapshot.key
        async with self._lock:
            if self.version(key) != expected_version:
                self._record("version_conflicts", AVAILABILITY_VERSION_CONFLICTS_TOTAL)
                logger.debug(f"Discarded outdated snapshot for {key}")
                return False
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest()
            self._entries[key] = _CachedSnapshot(snapshot, self._clock())
            self._entries.move_to_end(key)
            return True

    async def patch(
        self,
        key: AvailabilityKey,
        update: Callable[[AvailabilitySnapshot], AvailabilitySnapshot],
    ) -> AvailabilitySnapshot | None:
        """
        Replace the cached snapshot for ``key`` with ``update(snapshot)``.

        The entry keeps its original store time, so patching never extends
        how long ledger figures are served. Returns the new snapshot, or
        None when nothing was cached.
        """
        async with self._lock:
            self._bump(key)
            entry = self._entries.get(key)
            if entry is None:
                return None
            updated = update(entry.snapshot)
            self._entries[key] = _CachedSnapshot(updated, entry.stored_at)
            return updated

    async def invalidate(self, key: AvailabilityKey) -> bool:
        """Drop the entry for ``key``. Returns True if one was cached."""
        async with self._lock:
            self._bump(key)
            removed = self._entries.pop(key, None) is not None
        self._record("invalidations", AVAILABILITY_INVALIDATIONS_TOTAL)
        return removed

    async def clear(self) -> int:
        """Drop every entry. Returns the number of entries dropped."""
        async with self._lock:
            count = len(self._entries)
            for key in set(self._versions) | set(self._entries):
                self._bump(key)
            self._entries.clear()
        logger.info(f"Availability cache cleared ({count} entries)")
        return count

    def _evict_oldest(self) -> None:
        """Evict the least recently used entry (must be called under lock)."""
        if not self._entries:
            return
        oldest_key, _ = self._entries.popitem(last=False)
        self._bump(oldest_key)
        self._record("cache_evictions", AVAILABILITY_CACHE_EVICTIONS_TOTAL)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        fresh = sum(1 for entry in self._entries.values() if self._is_fresh(entry))
        with self._metrics_lock:
            metrics = dict(self.metrics.__dict__)
            metrics["hit_ratio"] = self.metrics.hit_ratio
        return {
            "size": len(self._entries),
            "fresh_entries": fresh,
            "max_size": self.max_size,
            "ttl": self.ttl,
            "metrics": metrics,
        }


__all__ = ["CacheMetrics", "SnapshotCache"]
