# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Reservation types for the hold state machine.

A Reservation is a time-boxed claim on inventory. It starts in ``reserved``
and moves exactly once to one terminal status. Reservations are frozen
pydantic models: a transition produces a new instance, so a terminal
Reservation can never be mutated afterwards.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..exceptions import InvalidStateError
from .availability import AvailabilityKey

T = TypeVar("T")


class ReservationStatus(Enum):
    """Lifecycle status of a hold."""

    RESERVED = "reserved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.RESERVED


class Reservation(BaseModel):
    """
    A hold on ``quantity`` units of one (event, ticket type).

    Created only by the reservation manager; never deleted, so the full
    history stays available for audit and listings.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    ticket_type_id: str
    quantity: int = Field(ge=1)
    buyer_address: str
    unit_price: Decimal
    total_price: Decimal
    created_at: datetime
    expires_at: datetime
    status: ReservationStatus = ReservationStatus.RESERVED
    closed_at: datetime | None = None

    @model_validator(mode="after")
    def _validate_invariants(self) -> "Reservation":
        """Validate deadline ordering and price arithmetic."""
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        if self.total_price != self.unit_price * self.quantity:
            raise ValueError("total_price must equal unit_price * quantity")
        if self.status.is_terminal and self.closed_at is None:
            raise ValueError("terminal reservations must record closed_at")
        return self

    @classmethod
    def create(
        cls,
        event_id: str,
        ticket_type_id: str,
        quantity: int,
        buyer_address: str,
        unit_price: Decimal,
        created_at: datetime,
        hold_duration: timedelta,
    ) -> "Reservation":
        """Create a new hold in ``reserved`` state with a fresh id."""
        return cls(
            id=str(uuid.uuid4()),
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            quantity=quantity,
            buyer_address=buyer_address,
            unit_price=unit_price,
            total_price=unit_price * quantity,
            created_at=created_at,
            expires_at=created_at + hold_duration,
        )

    @property
    def key(self) -> AvailabilityKey:
        """The (event, ticket type) inventory key this hold draws from."""
        return AvailabilityKey(self.event_id, self.ticket_type_id)

    @property
    def is_active(self) -> bool:
        return self.status is ReservationStatus.RESERVED

    def is_overdue(self, now: datetime) -> bool:
        """True once ``now`` is strictly past the deadline."""
        return now > self.expires_at

    def time_left_seconds(self, now: datetime) -> int:
        """Whole seconds until the deadline, never negative."""
        remaining = (self.expires_at - now).total_seconds()
        return max(0, math.floor(remaining))

    def transition(
        self, status: ReservationStatus, at: datetime, operation: str
    ) -> "Reservation":
        """
        Return a copy of this hold moved to a terminal ``status``.

        Raises:
            InvalidStateError: If this hold is not ``reserved`` any more.
            ValueError: If ``status`` is not terminal.
        """
        if not status.is_terminal:
            raise ValueError("reservations can only move to a terminal status")
        if not self.is_active:
            raise InvalidStateError(self.id, self.status.value, operation)
        return self.model_copy(update={"status": status, "closed_at": at})


@dataclass(frozen=True)
class ReservationView:
    """A reservation plus the server-computed seconds left on its hold."""

    reservation: Reservation
    time_left_seconds: int

    def to_dict(self) -> dict[str, Any]:
        data = self.reservation.model_dump(mode="json")
        data["time_left_seconds"] = self.time_left_seconds
        return data


@dataclass
class Page(Generic[T]):
    """
    One page of a listing.

    Buyer listings are offset based (``offset``/``limit``); admin listings
    are page based and also fill ``page``, ``page_size`` and ``total_pages``.
    """

    items: list[T] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 0
    page: int | None = None
    page_size: int | None = None
    total_pages: int | None = None


def utc_now() -> datetime:
    """Default engine clock."""
    return datetime.now(timezone.utc)


__all__ = [
    "Page",
    "Reservation",
    "ReservationStatus",
    "ReservationView",
    "utc_now",
]
