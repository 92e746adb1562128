# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the ticket reservation engine.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from ReservationEngineError, making it easy to catch
every engine failure with a single except clause. Each exception carries a
stable ``kind`` (an ErrorKind value) and a user-safe ``reason`` that never
includes internal details such as stack traces or collaborator messages.

Two outcomes of the taxonomy are deliberately NOT exceptions:
``already_checked_in`` and ``issuance_degraded``. Both describe successful
calls and are reported as values (see CheckInOutcome and SaleRecord).
"""

from datetime import datetime
from enum import Enum


class ErrorKind(Enum):
    """Stable identifiers for failure and informational outcome kinds."""

    INSUFFICIENT_INVENTORY = "insufficient_inventory"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    EXPIRED = "expired"
    PAYMENT_REJECTED = "payment_rejected"
    VERIFICATION_FAILED = "verification_failed"
    ALREADY_CHECKED_IN = "already_checked_in"
    AVAILABILITY_UNKNOWN = "availability_unknown"
    ISSUANCE_DEGRADED = "issuance_degraded"
    INVALID_REQUEST = "invalid_request"
    CONFIGURATION_ERROR = "configuration_error"
    STORE_ERROR = "store_error"
    INTERNAL = "internal"


class ReservationEngineError(Exception):
    """Base exception for all reservation engine errors.

    Catch this exception to handle any error originating from the library.

    Attributes:
        kind: Stable ErrorKind for programmatic handling.
        reason: Human-readable, user-safe description.

    Example:
        try:
            await engine.reservations.reserve(event_id, ticket_type_id, 2, buyer)
        except ReservationEngineError as e:
            logger.info("reserve failed: %s (%s)", e.reason, e.kind.value)
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


class InsufficientInventoryError(ReservationEngineError):
    """Raised when a hold requests more units than are currently available.

    No state is mutated when this is raised.

    Attributes:
        event_id: Event the hold was requested for.
        ticket_type_id: Ticket type the hold was requested for.
        requested: Number of units requested.
        available: Units available at the time of the check.
    """

    kind = ErrorKind.INSUFFICIENT_INVENTORY

    def __init__(
        self,
        event_id: str,
        ticket_type_id: str,
        requested: int,
        available: int,
    ):
        super().__init__(
            f"Insufficient tickets available: requested {requested}, "
            f"available {available}"
        )
        self.event_id = event_id
        self.ticket_type_id = ticket_type_id
        self.requested = requested
        self.available = available


class NotFoundError(ReservationEngineError):
    """Raised when a hold, ticket type or token record does not exist.

    Attributes:
        resource: Name of the missing resource type.
        identifier: Identifier that was looked up.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.identifier = identifier


class ReservationNotFoundError(NotFoundError):
    """Raised when no reservation exists for an id."""

    def __init__(self, reservation_id: str):
        super().__init__("Reservation", reservation_id)
        self.reservation_id = reservation_id


class TicketTypeNotFoundError(NotFoundError):
    """Raised when the supply ledger has no record for an (event, ticket type)."""

    def __init__(self, event_id: str, ticket_type_id: str):
        super().__init__("Ticket type", f"{event_id}/{ticket_type_id}")
        self.event_id = event_id
        self.ticket_type_id = ticket_type_id


class CheckInNotFoundError(NotFoundError):
    """Raised when no check-in record exists for a token."""

    def __init__(self, token_id: str):
        super().__init__("Check-in", token_id)
        self.token_id = token_id


class InvalidStateError(ReservationEngineError):
    """Raised when a transition is requested from a non-``reserved`` hold.

    Attributes:
        reservation_id: The hold that was addressed.
        status: Its current status value.
        operation: The transition that was attempted (e.g. "cancel").
    """

    kind = ErrorKind.INVALID_STATE

    def __init__(self, reservation_id: str, status: str, operation: str):
        super().__init__(f"Reservation cannot {operation}: status is {status}")
        self.reservation_id = reservation_id
        self.status = status
        self.operation = operation


class ReservationExpiredError(ReservationEngineError):
    """Raised when a hold is finalized after its deadline.

    The hold is driven to ``expired`` before this is raised.
    """

    kind = ErrorKind.EXPIRED

    def __init__(self, reservation_id: str, expires_at: datetime):
        super().__init__("Reservation has expired")
        self.reservation_id = reservation_id
        self.expires_at = expires_at


class PaymentRejectedError(ReservationEngineError):
    """Raised when a payment proof fails the verification policy."""

    kind = ErrorKind.PAYMENT_REJECTED

    def __init__(self, reservation_id: str):
        super().__init__("Invalid payment signature")
        self.reservation_id = reservation_id


class VerificationFailedError(ReservationEngineError):
    """Raised when a presented token cannot be verified for check-in.

    Attributes:
        token_id: The token that was presented.
        detail: Short, user-safe description of why verification failed.
    """

    kind = ErrorKind.VERIFICATION_FAILED

    def __init__(self, token_id: str, detail: str = "Ticket could not be verified"):
        super().__init__(detail)
        self.token_id = token_id
        self.detail = detail


class AvailabilityUnknownError(ReservationEngineError):
    """Raised when the supply ledger is unreachable and no snapshot is cached."""

    kind = ErrorKind.AVAILABILITY_UNKNOWN

    def __init__(self, event_id: str, ticket_type_id: str):
        super().__init__("Ticket availability is temporarily unknown")
        self.event_id = event_id
        self.ticket_type_id = ticket_type_id


class InvalidRequestError(ReservationEngineError):
    """Raised when call arguments are malformed (quantity, ids, pagination)."""

    kind = ErrorKind.INVALID_REQUEST


class ConfigurationError(ReservationEngineError, ValueError):
    """Raised when configuration values are invalid.

    Also a ValueError so callers validating plain settings can catch either.
    """

    kind = ErrorKind.CONFIGURATION_ERROR


class StoreConnectionError(ReservationEngineError):
    """Raised when the store backend cannot be reached.

    Example:
        try:
            await store.health_check()
        except StoreConnectionError:
            logger.warning("Redis unavailable")
    """

    kind = ErrorKind.STORE_ERROR


class StoreOperationError(ReservationEngineError):
    """Raised when a store operation fails after the connection is established.

    This includes serialization problems and insert-once violations.
    """

    kind = ErrorKind.STORE_ERROR


__all__ = [
    "AvailabilityUnknownError",
    "CheckInNotFoundError",
    "ConfigurationError",
    "ErrorKind",
    "InsufficientInventoryError",
    "InvalidRequestError",
    "InvalidStateError",
    "NotFoundError",
    "PaymentRejectedError",
    "ReservationEngineError",
    "ReservationExpiredError",
    "ReservationNotFoundError",
    "StoreConnectionError",
    "StoreOperationError",
    "TicketTypeNotFoundError",
    "VerificationFailedError",
]
