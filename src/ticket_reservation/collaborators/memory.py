# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
In-process collaborators for the Ticket Reservation Engine

This module provides in-memory implementations of the collaborator
protocols (supply ledger, token issuer, persistence sink and token
verifier). They need no external services and are suitable for:
- Testing and development
- Single-process deployments
- Reference behavior for real adapters

Note:
    None of these are durable. A real deployment supplies adapters for its
    own ledger database, minting service and ticket store.
"""

import asyncio
import itertools
import logging
import secrets
from collections.abc import Sequence
from decimal import Decimal

from ..types.availability import AvailabilityKey, SupplyRecord
from ..types.checkin import TokenVerification
from ..types.sale import IssuanceRequest, IssuanceResult, TicketRecord

logger = logging.getLogger(__name__)


class InMemorySupplyLedger:
    """
    Dict-backed supply ledger.

    Ticket types are registered with ``set_supply``; ``increment_sold``
    refuses to push the sold count past the total supply.
    """

    def __init__(self) -> None:
        self._records: dict[AvailabilityKey, SupplyRecord] = {}
        self._lock = asyncio.Lock()

    async def set_supply(
        self,
        event_id: str,
        ticket_type_id: str,
        total_supply: int,
        unit_price: Decimal | str | int,
        sold_count: int = 0,
    ) -> SupplyRecord:
        """Register or replace the supply figures for a ticket type."""
        record = SupplyRecord(
            total_supply=total_supply,
            sold_count=sold_count,
            unit_price=Decimal(str(unit_price)),
        )
        async with self._lock:
            self._records[AvailabilityKey(event_id, ticket_type_id)] = record
        logger.debug(
            f"Supply set for {event_id}:{ticket_type_id}: "
            f"total={total_supply}, sold={sold_count}"
        )
        return record

    async def get_supply(
        self, event_id: str, ticket_type_id: str
    ) -> SupplyRecord | None:
        async with self._lock:
            return self._records.get(AvailabilityKey(event_id, ticket_type_id))

    async def increment_sold(
        self, event_id: str, ticket_type_id: str, quantity: int
    ) -> None:
        """
        Add ``quantity`` to the sold count.

        Raises:
            KeyError: If the ticket type is not registered.
            ValueError: If the new sold count would exceed the total supply.
        """
        key = AvailabilityKey(event_id, ticket_type_id)
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                raise KeyError(f"Unknown ticket type {key}")
            sold = record.sold_count + quantity
            if sold > record.total_supply:
                raise ValueError(
                    f"Sold count {sold} would exceed total supply "
                    f"{record.total_supply} for {key}"
                )
            self._records[key] = SupplyRecord(
                total_supply=record.total_supply,
                sold_count=sold,
                unit_price=record.unit_price,
            )


class LocalTokenIssuer:
    """
    Token issuer that mints sequential token ids locally.

    Every call returns ``request.quantity`` ids and a fresh ``0x``-prefixed
    32-byte hex transaction reference. Issued requests are kept in
    ``issued`` for inspection.
    """

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self.issued: list[IssuanceRequest] = []

    async def issue_tokens(self, request: IssuanceRequest) -> IssuanceResult:
        token_ids = tuple(str(next(self._counter)) for _ in range(request.quantity))
        self.issued.append(request)
        return IssuanceResult(
            token_ids=token_ids,
            transaction_ref=f"0x{secrets.token_hex(32)}",
        )


class InMemoryTicketSink:
    """Persistence sink that keeps finalized tickets keyed by token id."""

    def __init__(self) -> None:
        self._tickets: dict[str, TicketRecord] = {}
        self._lock = asyncio.Lock()

    async def save_tickets(self, tickets: Sequence[TicketRecord]) -> None:
        async with self._lock:
            for ticket in tickets:
                self._tickets[ticket.token_id] = ticket

    async def get_ticket(self, token_id: str) -> TicketRecord | None:
        async with self._lock:
            return self._tickets.get(token_id)

    async def tickets_for_owner(self, owner_address: str) -> list[TicketRecord]:
        async with self._lock:
            return [
                t
                for t in self._tickets.values()
                if t.owner_address.lower() == owner_address.lower()
            ]

    def __len__(self) -> int:
        return len(self._tickets)


class TicketRecordVerifier:
    """
    Token verifier backed by the tickets an InMemoryTicketSink has recorded.

    A token is valid when the sink holds a ticket for it; the owner and
    event come from that ticket.
    """

    def __init__(self, sink: InMemoryTicketSink) -> None:
        self._sink = sink

    async def verify(self, token_id: str) -> TokenVerification:
        ticket = await self._sink.get_ticket(token_id)
        if ticket is None:
            return TokenVerification(valid=False, detail="Ticket not found")
        return TokenVerification(
            valid=True,
            owner=ticket.owner_address,
            event_id=ticket.event_id,
        )


__all__ = [
    "InMemorySupplyLedger",
    "InMemoryTicketSink",
    "LocalTokenIssuer",
    "TicketRecordVerifier",
]
