# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Ticket Reservation Engine - oversell-free holds, sales and check-ins.

This library turns requests for N units of a finite ticket inventory into
time-boxed holds, converts paid holds into sales through an external token
issuer, releases holds on cancellation or timeout, and keeps a derived
availability figure consistent with the authoritative supply ledger.

Key Features:
    - Per-(event, ticket type) critical sections: no check-then-act races
    - Availability snapshots cached with bounded staleness and invalidation
    - Durable expiry: a recovery sweep driven by persisted deadlines, with
      per-hold timers as an optimization
    - Committed-but-degraded sales instead of silent catch-and-log
    - Idempotent check-ins
    - Memory and Redis stores, Prometheus metrics

Quick Start:
    >>> from ticket_reservation import InMemorySupplyLedger, ReservationEngine
    >>>
    >>> ledger = InMemorySupplyLedger()
    >>> await ledger.set_supply("evt-1", "ga", total_supply=100, unit_price="25")
    >>> async with ReservationEngine(ledger=ledger) as engine:
    ...     hold = await engine.reservations.reserve("evt-1", "ga", 2, "0xabc")
    ...     sale = await engine.fulfillment.complete(hold.id, payment_proof)

Note: RedisStore requires the 'redis' extra. Install with:
    pip install ticket-reservation-engine[redis]

Version: 1.0.0
"""

__version__ = "1.0.0"

from typing import TYPE_CHECKING

from .api import ApiError, ApiResponse, TicketingAPI
from .availability import AvailabilityTracker, SnapshotCache
from .checkin import CheckInLedger
from .collaborators import (
    InMemorySupplyLedger,
    InMemoryTicketSink,
    LocalTokenIssuer,
    TicketRecordVerifier,
)
from .config import EngineConfig
from .engine import ReservationEngine
from .exceptions import (
    AvailabilityUnknownError,
    CheckInNotFoundError,
    ConfigurationError,
    ErrorKind,
    InsufficientInventoryError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    PaymentRejectedError,
    ReservationEngineError,
    ReservationExpiredError,
    ReservationNotFoundError,
    StoreConnectionError,
    StoreOperationError,
    TicketTypeNotFoundError,
    VerificationFailedError,
)
from .fulfillment import (
    DefaultPaymentProofPolicy,
    FulfillmentOrchestrator,
    PaymentProofPolicy,
)
from .locks import KeyedLock
from .protocols import (
    PersistenceSinkProtocol,
    SupplyLedgerProtocol,
    TokenIssuerProtocol,
    TokenVerifierProtocol,
)
from .reservation import ReservationManager
from .scheduler import ExpirationScheduler, TimerState
from .stores import BaseStore, HealthCheckResult, MemoryStore
from .types import (
    AvailabilityKey,
    AvailabilitySnapshot,
    CheckInOutcome,
    CheckInRecord,
    Degradation,
    IssuanceRequest,
    IssuanceResult,
    Page,
    Reservation,
    ReservationStatus,
    ReservationView,
    SaleRecord,
    SupplyRecord,
    TicketRecord,
    TokenVerification,
    VerifyingInfo,
)

# Lazy import for optional redis store
if TYPE_CHECKING:
    from .stores import RedisStore

__all__ = [
    "ApiError",
    "ApiResponse",
    "AvailabilityKey",
    "AvailabilitySnapshot",
    "AvailabilityTracker",
    "AvailabilityUnknownError",
    "BaseStore",
    "CheckInLedger",
    "CheckInNotFoundError",
    "CheckInOutcome",
    "CheckInRecord",
    "ConfigurationError",
    "DefaultPaymentProofPolicy",
    "Degradation",
    "EngineConfig",
    "ErrorKind",
    "ExpirationScheduler",
    "FulfillmentOrchestrator",
    "HealthCheckResult",
    "InMemorySupplyLedger",
    "InMemoryTicketSink",
    "InsufficientInventoryError",
    "InvalidRequestError",
    "InvalidStateError",
    "IssuanceRequest",
    "IssuanceResult",
    "KeyedLock",
    "LocalTokenIssuer",
    "MemoryStore",
    "NotFoundError",
    "Page",
    "PaymentProofPolicy",
    "PaymentRejectedError",
    "PersistenceSinkProtocol",
    "RedisStore",
    "Reservation",
    "ReservationEngine",
    "ReservationEngineError",
    "ReservationExpiredError",
    "ReservationManager",
    "ReservationNotFoundError",
    "ReservationStatus",
    "ReservationView",
    "SaleRecord",
    "SnapshotCache",
    "StoreConnectionError",
    "StoreOperationError",
    "SupplyLedgerProtocol",
    "SupplyRecord",
    "TicketRecord",
    "TicketRecordVerifier",
    "TicketTypeNotFoundError",
    "TicketingAPI",
    "TimerState",
    "TokenIssuerProtocol",
    "TokenVerification",
    "TokenVerifierProtocol",
    "VerificationFailedError",
    "VerifyingInfo",
    "__version__",
]


def __getattr__(name: str) -> type:
    """Lazy import for the optional redis store."""
    if name == "RedisStore":
        from .stores import RedisStore

        return RedisStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
