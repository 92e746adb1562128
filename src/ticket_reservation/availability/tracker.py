# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""AvailabilityTracker: derived availability from the supply ledger plus active holds."""

import logging
from collections.abc import Callable
from datetime import datetime

from ..config import EngineConfig
from ..exceptions import AvailabilityUnknownError, TicketTypeNotFoundError
from ..observability.constants import AVAILABILITY_STALE_FALLBACKS_TOTAL
from ..observability.protocols import MetricsCollectorProtocol
from ..protocols.ledger import SupplyLedgerProtocol
from ..stores.base import BaseStore
from ..types.availability import AvailabilityKey, AvailabilitySnapshot
from ..types.reservation import ReservationStatus, utc_now
from .cache import SnapshotCache

logger = logging.getLogger(__name__)


class AvailabilityTracker:
    """
    Computes and caches AvailabilitySnapshots.

    A snapshot is derived from the ledger's total/sold figures, the
    quantities of all ``reserved`` holds for the key, and the quantity of
    sales that are completed but not yet confirmed by the ledger
    ("settling"). Counting settling units as sold closes the window in
    which a completed hold is neither active nor recorded as sold.

    The tracker is a read optimization only. The capacity check that
    guards against oversell is the one the reservation manager performs
    while holding the key's critical section; a snapshot read outside it
    may be momentarily behind.
    """

    def __init__(
        self,
        ledger: SupplyLedgerProtocol,
        store: BaseStore,
        config: EngineConfig | None = None,
        metrics_collector: MetricsCollectorProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or EngineConfig()
        self._ledger = ledger
        self._store = store
        self._clock = clock
        self._metrics_collector = metrics_collector
        self.cache = SnapshotCache(
            ttl=self.config.availability_cache_ttl,
            max_size=self.config.availability_cache_max_size,
            metrics_collector=metrics_collector,
        )
        self._settling: dict[AvailabilityKey, int] = {}

    async def get(self, event_id: str, ticket_type_id: str) -> AvailabilitySnapshot:
        """
        Return availability for (event, ticket type), from cache when fresh.

        Raises:
            TicketTypeNotFoundError: If the ledger has no such ticket type.
            AvailabilityUnknownError: If the ledger failed and nothing is cached.
        """
        key = AvailabilityKey(event_id, ticket_type_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        return await self.refresh(key)

    async def refresh(self, key: AvailabilityKey) -> AvailabilitySnapshot:
        """Recompute the snapshot for ``key`` from source and cache it."""
        version = self.cache.version(key)
        # Read settling before the ledger: a settlement ending in between
        # is then counted twice (conservative), never zero times.
        settling = self._settling.get(key, 0)

        try:
            supply = await self._ledger.get_supply(key.event_id, key.ticket_type_id)
        except Exception as e:
            stale = await self.cache.get_stale(key)
            if stale is not None:
                logger.warning(
                    f"Supply ledger read failed for {key}, serving snapshot "
                    f"from {stale.computed_at.isoformat()}: {e}"
                )
                if self._metrics_collector:
                    self._metrics_collector.inc_counter(
                        AVAILABILITY_STALE_FALLBACKS_TOTAL
                    )
                return stale
            logger.warning(f"Supply ledger read failed for {key}, no cached snapshot: {e}")
            raise AvailabilityUnknownError(key.event_id, key.ticket_type_id) from e

        if supply is None:
            raise TicketTypeNotFoundError(key.event_id, key.ticket_type_id)

        active = await self._store.scan_reservations(
            event_id=key.event_id,
            ticket_type_id=key.ticket_type_id,
            status=ReservationStatus.RESERVED,
        )
        snapshot = AvailabilitySnapshot(
            key=key,
            total_supply=supply.total_supply,
            sold_count=supply.sold_count + settling,
            active_reserved_count=sum(r.quantity for r in active),
            unit_price=supply.unit_price,
            computed_at=self._clock(),
        )
        await self.cache.set(snapshot, version)
        return snapshot

    async def record_hold(
        self, key: AvailabilityKey, quantity: int
    ) -> AvailabilitySnapshot | None:
        """
        Count ``quantity`` newly held units against the cached snapshot.

        Must be called inside the key's critical section, right after the
        hold is stored.
        """
        return await self.cache.patch(key, lambda s: s.with_hold(quantity))

    async def invalidate(self, key: AvailabilityKey) -> bool:
        """Drop the cached snapshot so the next read recomputes from source."""
        removed = await self.cache.invalidate(key)
        logger.debug(f"Availability invalidated for {key}")
        return removed

    async def invalidate_all(self) -> int:
        """Drop every cached snapshot. Returns how many were dropped."""
        return await self.cache.clear()

    async def begin_settlement(self, key: AvailabilityKey, quantity: int) -> None:
        """Count ``quantity`` units of a just-completed hold as sold."""
        self._settling[key] = self._settling.get(key, 0) + quantity
        await self.invalidate(key)

    async def end_settlement(self, key: AvailabilityKey, quantity: int) -> None:
        """Stop counting units the ledger now reports as sold."""
        remaining = self._settling.get(key, 0) - quantity
        if remaining > 0:
            self._settling[key] = remaining
        else:
            self._settling.pop(key, None)
        await self.invalidate(key)

    def settling(self, key: AvailabilityKey) -> int:
        """Units completed but not yet confirmed by the ledger."""
        return self._settling.get(key, 0)


__all__ = ["AvailabilityTracker"]
