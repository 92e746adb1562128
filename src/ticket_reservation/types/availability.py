# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Availability types.

The supply ledger is authoritative for total and sold units; the
AvailabilitySnapshot is a derived figure that also accounts for units held
by active reservations.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, NamedTuple


class AvailabilityKey(NamedTuple):
    """Inventory key: one ticket type of one event."""

    event_id: str
    ticket_type_id: str

    @property
    def cache_key(self) -> str:
        return f"{self.event_id}:{self.ticket_type_id}"

    def __str__(self) -> str:
        return self.cache_key


@dataclass(frozen=True)
class SupplyRecord:
    """Authoritative supply figures for a key, as read from the ledger."""

    total_supply: int
    sold_count: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.total_supply < 0 or self.sold_count < 0:
            raise ValueError("supply figures cannot be negative")


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """
    Derived availability for one key.

    Attributes:
        key: The (event, ticket type) this snapshot describes.
        total_supply: Total units from the ledger.
        sold_count: Units sold, including sales still settling into the ledger.
        active_reserved_count: Units held by ``reserved`` reservations.
        unit_price: Current unit price from the ledger.
        computed_at: When the snapshot was derived from source.
    """

    key: AvailabilityKey
    total_supply: int
    sold_count: int
    active_reserved_count: int
    unit_price: Decimal
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def available_count(self) -> int:
        """Units still claimable, never negative."""
        return max(
            0, self.total_supply - self.sold_count - self.active_reserved_count
        )

    @property
    def is_available(self) -> bool:
        return self.available_count > 0

    def with_hold(self, quantity: int) -> "AvailabilitySnapshot":
        """Copy of this snapshot with ``quantity`` more units held."""
        return replace(
            self, active_reserved_count=self.active_reserved_count + quantity
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.key.event_id,
            "ticket_type_id": self.key.ticket_type_id,
            "total_supply": self.total_supply,
            "sold_count": self.sold_count,
            "active_reserved_count": self.active_reserved_count,
            "available_count": self.available_count,
            "is_available": self.is_available,
            "unit_price": str(self.unit_price),
            "computed_at": self.computed_at.isoformat(),
        }


__all__ = [
    "AvailabilityKey",
    "AvailabilitySnapshot",
    "SupplyRecord",
]
