# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Value types and persisted entities for the reservation engine."""

from .availability import AvailabilityKey, AvailabilitySnapshot, SupplyRecord
from .checkin import CheckInOutcome, CheckInRecord, TokenVerification, VerifyingInfo
from .reservation import (
    Page,
    Reservation,
    ReservationStatus,
    ReservationView,
    utc_now,
)
from .sale import (
    Degradation,
    IssuanceRequest,
    IssuanceResult,
    SaleRecord,
    TicketRecord,
)

__all__ = [
    "AvailabilityKey",
    "AvailabilitySnapshot",
    "CheckInOutcome",
    "CheckInRecord",
    "Degradation",
    "IssuanceRequest",
    "IssuanceResult",
    "Page",
    "Reservation",
    "ReservationStatus",
    "ReservationView",
    "SaleRecord",
    "SupplyRecord",
    "TicketRecord",
    "TokenVerification",
    "VerifyingInfo",
    "utc_now",
]
