# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Base Store for the Ticket Reservation Engine

This module provides the BaseStore abstract class that defines the common
interface for all store implementations.

Features:
- Reservation storage with filtered, newest-first scans
- Insert-once sale records
- Atomic insert-if-absent check-in records
- Health checks for monitoring
"""

import abc
import logging
from dataclasses import dataclass
from typing import Any

from ..types.checkin import CheckInRecord
from ..types.reservation import Reservation, ReservationStatus
from ..types.sale import SaleRecord

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """
    Structured health check result for store monitoring.

    Attributes:
        healthy: Whether the store is operational
        store_type: Type of store (e.g., 'redis', 'memory')
        namespace: Store namespace
        error: Error message if unhealthy
        metadata: Additional store-specific information
    """

    healthy: bool
    store_type: str
    namespace: str
    error: str | None = None
    metadata: dict[str, Any] | None = None


def newest_first(reservations: list[Reservation]) -> list[Reservation]:
    """Order reservations by creation time descending, id as tie-break."""
    return sorted(reservations, key=lambda r: (r.created_at, r.id), reverse=True)


class BaseStore(abc.ABC):
    """
    An abstract base class that defines the common interface for all store
    implementations used by the reservation engine.

    The store is the system of record for reservations, sale records and
    check-in records. It performs no locking across keys; the engine
    serializes mutations of one (event, ticket type) through its per-key
    critical section. Stores must only guarantee that single operations
    are atomic, and that ``put_sale`` and ``put_check_in_if_absent`` never
    overwrite an existing record.

    Subclasses must implement all abstract methods to provide a concrete
    store implementation.
    """

    def __init__(self, namespace: str = "tickets"):
        """
        Initialize the store with a namespace for isolation.

        Args:
            namespace: Namespace for isolating data across different instances
        """
        self.namespace = namespace

    # ==========================================================================
    # Reservations
    # ==========================================================================

    @abc.abstractmethod
    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        """
        Get a reservation by id.

        Returns:
            The reservation if it exists, None otherwise
        """
        pass

    @abc.abstractmethod
    async def put_reservation(self, reservation: Reservation) -> None:
        """
        Insert or replace a reservation.

        Args:
            reservation: The reservation to store under its id
        """
        pass

    @abc.abstractmethod
    async def scan_reservations(
        self,
        event_id: str | None = None,
        ticket_type_id: str | None = None,
        buyer_address: str | None = None,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]:
        """
        Return every reservation matching all given filters.

        Buyer addresses compare case-insensitively. Results are ordered
        newest-first (``created_at`` descending, ``id`` as tie-break).
        """
        pass

    # ==========================================================================
    # Sales
    # ==========================================================================

    @abc.abstractmethod
    async def get_sale(self, order_id: str) -> SaleRecord | None:
        """Get the sale record for an order, or None."""
        pass

    @abc.abstractmethod
    async def put_sale(self, sale: SaleRecord) -> None:
        """
        Insert a sale record.

        Raises:
            StoreOperationError: If a sale already exists for the order id
        """
        pass

    # ==========================================================================
    # Check-ins
    # ==========================================================================

    @abc.abstractmethod
    async def get_check_in(self, token_id: str) -> CheckInRecord | None:
        """Get the check-in record for a token, or None."""
        pass

    @abc.abstractmethod
    async def put_check_in_if_absent(
        self, record: CheckInRecord
    ) -> tuple[CheckInRecord, bool]:
        """
        Atomically store a check-in record unless one exists for the token.

        Returns:
            ``(stored_record, created)``: the new record and True, or the
            existing record and False
        """
        pass

    @abc.abstractmethod
    async def scan_check_ins(self, event_id: str | None = None) -> list[CheckInRecord]:
        """Return check-in records, optionally for one event, newest-first."""
        pass

    # ==========================================================================
    # Health and Lifecycle
    # ==========================================================================

    @abc.abstractmethod
    async def health_check(self) -> HealthCheckResult:
        """
        Perform a health check on the store.

        Returns:
            HealthCheckResult containing:
                - healthy: bool - Whether the store is operational
                - store_type: str - Type of store (e.g., 'redis', 'memory')
                - namespace: str - Store namespace
                - error: Optional[str] - Error message if unhealthy
                - metadata: Optional[Dict] - Record counts and other details
        """
        pass

    @abc.abstractmethod
    async def clear(self) -> None:
        """Remove every record in this store's namespace."""
        pass

    async def close(self) -> None:
        """Release store resources. No-op by default."""
        return None


__all__ = ["BaseStore", "HealthCheckResult", "newest_first"]
