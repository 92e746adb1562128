# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for the authoritative supply ledger."""

from typing import Protocol, runtime_checkable

from ..types.availability import SupplyRecord


@runtime_checkable
class SupplyLedgerProtocol(Protocol):
    """
    Authoritative store of total/sold units and unit price per
    (event, ticket type).

    Both calls are I/O and may raise; the engine never holds a per-key
    critical section across them except for the cold-cache read.
    """

    async def get_supply(
        self, event_id: str, ticket_type_id: str
    ) -> SupplyRecord | None:
        """Return the supply record, or None if the ticket type is unknown."""
        ...

    async def increment_sold(
        self, event_id: str, ticket_type_id: str, quantity: int
    ) -> None:
        """Add ``quantity`` to the sold count."""
        ...
