# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""ReservationManager: the hold state machine and its storage."""

import logging
import math
from collections.abc import Callable
from datetime import datetime

from ..availability.tracker import AvailabilityTracker
from ..config import EngineConfig
from ..exceptions import (
    InsufficientInventoryError,
    InvalidRequestError,
    InvalidStateError,
    ReservationEngineError,
    ReservationExpiredError,
    ReservationNotFoundError,
)
from ..locks import KeyedLock
from ..observability.constants import (
    HOLDS_ACTIVE,
    HOLDS_CANCELLED_TOTAL,
    HOLDS_COMPLETED_TOTAL,
    HOLDS_CREATED_TOTAL,
    HOLDS_EXPIRED_TOTAL,
    HOLDS_REJECTED_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from ..scheduler.expiration import ExpirationScheduler
from ..stores.base import BaseStore
from ..types.availability import AvailabilityKey
from ..types.reservation import (
    Page,
    Reservation,
    ReservationStatus,
    ReservationView,
    utc_now,
)

logger = logging.getLogger(__name__)

Authorizer = Callable[[Reservation], None]


def _require_text(name: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(f"{name} is required")
    return value


class ReservationManager:
    """
    Owns the Reservation state machine.

    Every transition of a hold (create, cancel, expire, complete) runs
    inside the critical section of the hold's (event, ticket type) key and
    re-reads the hold there, so the stored status is the single source of
    truth for timers and sweeps racing against user actions.

    Holds are never deleted; terminal holds stay in the store for audit
    and listings.
    """

    def __init__(
        self,
        store: BaseStore,
        tracker: AvailabilityTracker,
        locks: KeyedLock | None = None,
        config: EngineConfig | None = None,
        metrics_collector: MetricsCollectorProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or EngineConfig()
        self._store = store
        self._tracker = tracker
        self._locks = locks if locks is not None else KeyedLock()
        self._metrics_collector = metrics_collector
        self._clock = clock
        self.scheduler = ExpirationScheduler(
            release=self.release,
            sweep=self.sweep_expired,
            config=self.config,
            metrics_collector=metrics_collector,
            clock=clock,
        )

    @property
    def locks(self) -> KeyedLock:
        return self._locks

    # === Holds ===

    async def reserve(
        self,
        event_id: str,
        ticket_type_id: str,
        quantity: int,
        buyer_address: str,
    ) -> Reservation:
        """
        Place a hold on ``quantity`` units for ``buyer_address``.

        Raises:
            InvalidRequestError: If the quantity or identifiers are malformed.
            TicketTypeNotFoundError: If the ledger has no such ticket type.
            AvailabilityUnknownError: If availability cannot be determined.
            InsufficientInventoryError: If fewer than ``quantity`` units are
                available. Nothing is mutated in that case.
        """
        _require_text("event_id", event_id)
        _require_text("ticket_type_id", ticket_type_id)
        _require_text("buyer_address", buyer_address)
        if (
            not isinstance(quantity, int)
            or isinstance(quantity, bool)
            or not 1 <= quantity <= self.config.max_quantity
        ):
            raise InvalidRequestError(
                f"Quantity must be between 1 and {self.config.max_quantity}"
            )

        key = AvailabilityKey(event_id, ticket_type_id)

        # Warm the cache outside the critical section so a ledger read does
        # not serialize other reserves on this key.
        await self._tracker.get(event_id, ticket_type_id)

        async with self._locks.hold(key):
            snapshot = await self._tracker.get(event_id, ticket_type_id)
            if snapshot.available_count < quantity:
                self._inc(
                    HOLDS_REJECTED_TOTAL, event_id, reason="insufficient_inventory"
                )
                raise InsufficientInventoryError(
                    event_id, ticket_type_id, quantity, snapshot.available_count
                )

            reservation = Reservation.create(
                event_id=event_id,
                ticket_type_id=ticket_type_id,
                quantity=quantity,
                buyer_address=buyer_address,
                unit_price=snapshot.unit_price,
                created_at=self._clock(),
                hold_duration=self.config.hold_duration,
            )
            await self._store.put_reservation(reservation)
            await self._tracker.record_hold(key, quantity)

        # A stopped scheduler gets no timers; recover() re-arms on start
        if self.config.arm_timers and self.scheduler.running:
            self.scheduler.arm(reservation.id, reservation.expires_at)

        self._inc(HOLDS_CREATED_TOTAL, event_id)
        self._active_delta(event_id, +1)
        logger.debug(
            f"Hold {reservation.id} created: {quantity} x {key} "
            f"for {buyer_address}, expires {reservation.expires_at.isoformat()}"
        )
        return reservation

    async def cancel(self, reservation_id: str) -> Reservation:
        """
        Cancel a ``reserved`` hold and return it in its terminal state.

        Raises:
            ReservationNotFoundError: If the hold does not exist.
            InvalidStateError: If the hold is no longer ``reserved``.
        """
        reservation = await self._require(reservation_id)
        async with self._locks.hold(reservation.key):
            current = await self._require(reservation_id)
            cancelled = current.transition(
                ReservationStatus.CANCELLED, self._clock(), "be cancelled"
            )
            await self._store.put_reservation(cancelled)
            await self._tracker.invalidate(cancelled.key)

        self.scheduler.disarm(reservation_id)
        self._inc(HOLDS_CANCELLED_TOTAL, cancelled.event_id)
        self._active_delta(cancelled.event_id, -1)
        logger.debug(f"Hold {reservation_id} cancelled")
        return cancelled

    async def get(self, reservation_id: str) -> ReservationView:
        """
        Return a hold with its server-computed ``time_left_seconds``.

        Raises:
            ReservationNotFoundError: If the hold does not exist.
        """
        reservation = await self._require(reservation_id)
        now = self._clock()
        time_left = reservation.time_left_seconds(now) if reservation.is_active else 0
        return ReservationView(reservation, time_left)

    async def release(self, reservation_id: str, trigger: str = "timer") -> bool:
        """
        Expire a hold if it is still ``reserved``.

        Idempotent: used by both the per-hold timer and the sweep. A hold
        that is missing or already terminal is a silent no-op.

        Returns:
            True only for the call that performed the transition.
        """
        reservation = await self._store.get_reservation(reservation_id)
        if reservation is None or not reservation.is_active:
            return False

        async with self._locks.hold(reservation.key):
            current = await self._store.get_reservation(reservation_id)
            if current is None or not current.is_active:
                logger.debug(f"Release of {reservation_id} skipped: already closed")
                return False
            expired = current.transition(
                ReservationStatus.EXPIRED, self._clock(), "expire"
            )
            await self._store.put_reservation(expired)
            await self._tracker.invalidate(expired.key)

        self.scheduler.disarm(reservation_id)
        self._inc(HOLDS_EXPIRED_TOTAL, expired.event_id, trigger=trigger)
        self._active_delta(expired.event_id, -1)
        logger.debug(f"Hold {reservation_id} expired ({trigger})")
        return True

    async def sweep_expired(self) -> int:
        """
        Expire every ``reserved`` hold whose deadline has passed.

        Due holds are derived purely from ``expires_at``, independent of
        timer state. Returns the number of holds this sweep expired.
        """
        now = self._clock()
        candidates = await self._store.scan_reservations(
            status=ReservationStatus.RESERVED
        )
        count = 0
        for reservation in candidates:
            if not reservation.is_overdue(now):
                continue
            try:
                if await self.release(reservation.id, trigger="sweep"):
                    count += 1
            except ReservationEngineError as e:
                logger.warning(f"Sweep could not expire {reservation.id}: {e}")
        return count

    async def finalize(
        self, reservation_id: str, authorize: Authorizer
    ) -> Reservation:
        """
        Move a hold to ``completed`` after ``authorize`` accepts it.

        Runs under the key's critical section. Checks, in order: existence,
        ``reserved`` status, the deadline (an overdue hold is driven to
        ``expired``), then ``authorize``, which raises to refuse. On success
        the hold's units start settling as sold.

        Raises:
            ReservationNotFoundError: If the hold does not exist.
            InvalidStateError: If the hold is no longer ``reserved``.
            ReservationExpiredError: If the deadline has passed.
            Any error raised by ``authorize``.
        """
        reservation = await self._require(reservation_id)
        async with self._locks.hold(reservation.key):
            current = await self._require(reservation_id)
            now = self._clock()
            if not current.is_active:
                raise InvalidStateError(
                    reservation_id, current.status.value, "be completed"
                )
            if current.is_overdue(now):
                closed = current.transition(ReservationStatus.EXPIRED, now, "expire")
                await self._store.put_reservation(closed)
                await self._tracker.invalidate(closed.key)
            else:
                authorize(current)
                closed = current.transition(
                    ReservationStatus.COMPLETED, now, "be completed"
                )
                await self._store.put_reservation(closed)
                await self._tracker.begin_settlement(closed.key, closed.quantity)

        self.scheduler.disarm(reservation_id)
        self._active_delta(closed.event_id, -1)
        if closed.status is ReservationStatus.EXPIRED:
            self._inc(HOLDS_EXPIRED_TOTAL, closed.event_id, trigger="finalize")
            logger.info(f"Hold {reservation_id} expired before finalization")
            raise ReservationExpiredError(reservation_id, closed.expires_at)

        self._inc(HOLDS_COMPLETED_TOTAL, closed.event_id)
        logger.info(
            f"Hold {reservation_id} completed ({closed.quantity} x {closed.key})"
        )
        return closed

    async def recover(self) -> int:
        """
        Rebuild expiry state from the store after a (re)start.

        Expires every overdue hold, then re-arms timers for the holds that
        are still live from their persisted ``expires_at``. Returns the
        number of holds expired.
        """
        expired = await self.scheduler.sweep()
        rearmed = 0
        if self.config.arm_timers:
            for reservation in await self._store.scan_reservations(
                status=ReservationStatus.RESERVED
            ):
                self.scheduler.arm(reservation.id, reservation.expires_at)
                rearmed += 1
        logger.info(
            f"Recovery complete: {expired} holds expired, {rearmed} timers re-armed"
        )
        return expired

    # === Listings ===

    async def list_for_buyer(
        self,
        buyer_address: str,
        status: ReservationStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Page[ReservationView]:
        """Holds of one buyer, newest first, offset based."""
        _require_text("buyer_address", buyer_address)
        limit = self.config.default_page_size if limit is None else limit
        self._check_page_size(limit, "limit")
        if offset < 0:
            raise InvalidRequestError("offset must not be negative")

        matches = await self._store.scan_reservations(
            buyer_address=buyer_address, status=status
        )
        return Page(
            items=self._views(matches[offset : offset + limit]),
            total=len(matches),
            offset=offset,
            limit=limit,
        )

    async def list_all(
        self,
        event_id: str | None = None,
        status: ReservationStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[ReservationView]:
        """All holds, optionally for one event, newest first, page based."""
        if page < 1:
            raise InvalidRequestError("page must be at least 1")
        self._check_page_size(page_size, "page_size")

        matches = await self._store.scan_reservations(event_id=event_id, status=status)
        offset = (page - 1) * page_size
        return Page(
            items=self._views(matches[offset : offset + page_size]),
            total=len(matches),
            offset=offset,
            limit=page_size,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(len(matches) / page_size),
        )

    # === Helpers ===

    async def _require(self, reservation_id: str) -> Reservation:
        reservation = await self._store.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    def _views(self, reservations: list[Reservation]) -> list[ReservationView]:
        now = self._clock()
        return [
            ReservationView(r, r.time_left_seconds(now) if r.is_active else 0)
            for r in reservations
        ]

    def _check_page_size(self, value: int, name: str) -> None:
        if not 1 <= value <= self.config.max_page_size:
            raise InvalidRequestError(
                f"{name} must be between 1 and {self.config.max_page_size}"
            )

    def _inc(self, metric: str, event_id: str, **labels: str) -> None:
        if self._metrics_collector:
            self._metrics_collector.inc_counter(
                metric, labels={"event_id": event_id, **labels}
            )

    def _active_delta(self, event_id: str, delta: int) -> None:
        if not self._metrics_collector:
            return
        labels = {"event_id": event_id}
        if delta >= 0:
            self._metrics_collector.inc_gauge(HOLDS_ACTIVE, float(delta), labels=labels)
        else:
            self._metrics_collector.dec_gauge(HOLDS_ACTIVE, float(-delta), labels=labels)


__all__ = ["Authorizer", "ReservationManager"]
