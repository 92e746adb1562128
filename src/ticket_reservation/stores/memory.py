# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
MemoryStore for the Ticket Reservation Engine

This module provides an in-memory store implementation that doesn't require Redis.
Perfect for testing, development, and single-process applications.
"""

import asyncio
import logging

from ..exceptions import StoreOperationError
from ..types.checkin import CheckInRecord
from ..types.reservation import Reservation, ReservationStatus
from ..types.sale import SaleRecord
from .base import BaseStore, HealthCheckResult, newest_first

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """
    An in-memory store implementation for the reservation engine.

    Key Features:
    - Pure in-memory dict-based storage
    - Async-safe operations using asyncio.Lock
    - Records are frozen pydantic models, so stored values cannot be
      mutated through a returned reference
    - No external dependencies

    Note:
        This store is NOT suitable for:
        - Multi-process applications
        - Deployments that must survive a restart
    """

    def __init__(self, namespace: str = "tickets") -> None:
        super().__init__(namespace)
        self._reservations: dict[str, Reservation] = {}
        self._sales: dict[str, SaleRecord] = {}
        self._check_ins: dict[str, CheckInRecord] = {}

        # Async lock for thread safety
        self._lock = asyncio.Lock()

        logger.debug(f"Initialized MemoryStore with namespace '{namespace}'")

    # Reservations

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        async with self._lock:
            return self._reservations.get(reservation_id)

    async def put_reservation(self, reservation: Reservation) -> None:
        async with self._lock:
            self._reservations[reservation.id] = reservation

    async def scan_reservations(
        self,
        event_id: str | None = None,
        ticket_type_id: str | None = None,
        buyer_address: str | None = None,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]:
        buyer = buyer_address.lower() if buyer_address is not None else None
        async with self._lock:
            matches = [
                r
                for r in self._reservations.values()
                if (event_id is None or r.event_id == event_id)
                and (ticket_type_id is None or r.ticket_type_id == ticket_type_id)
                and (buyer is None or r.buyer_address.lower() == buyer)
                and (status is None or r.status is status)
            ]
        return newest_first(matches)

    # Sales

    async def get_sale(self, order_id: str) -> SaleRecord | None:
        async with self._lock:
            return self._sales.get(order_id)

    async def put_sale(self, sale: SaleRecord) -> None:
        async with self._lock:
            if sale.order_id in self._sales:
                raise StoreOperationError(
                    f"Sale record already exists for order {sale.order_id}"
                )
            self._sales[sale.order_id] = sale

    # Check-ins

    async def get_check_in(self, token_id: str) -> CheckInRecord | None:
        async with self._lock:
            return self._check_ins.get(token_id)

    async def put_check_in_if_absent(
        self, record: CheckInRecord
    ) -> tuple[CheckInRecord, bool]:
        async with self._lock:
            existing = self._check_ins.get(record.token_id)
            if existing is not None:
                return existing, False
            self._check_ins[record.token_id] = record
            return record, True

    async def scan_check_ins(self, event_id: str | None = None) -> list[CheckInRecord]:
        async with self._lock:
            matches = [
                c
                for c in self._check_ins.values()
                if event_id is None or c.event_id == event_id
            ]
        return sorted(
            matches, key=lambda c: (c.checked_in_at, c.token_id), reverse=True
        )

    # Health and Lifecycle

    async def health_check(self) -> HealthCheckResult:
        async with self._lock:
            return HealthCheckResult(
                healthy=True,
                store_type="memory",
                namespace=self.namespace,
                metadata={
                    "reservations_count": len(self._reservations),
                    "sales_count": len(self._sales),
                    "check_ins_count": len(self._check_ins),
                },
            )

    async def clear(self) -> None:
        async with self._lock:
            self._reservations.clear()
            self._sales.clear()
            self._check_ins.clear()
            logger.debug("Cleared all records")


__all__ = ["MemoryStore"]
