# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for the ticket persistence sink."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..types.sale import TicketRecord


@runtime_checkable
class PersistenceSinkProtocol(Protocol):
    """Durably records finalized tickets. Failures never undo a sale."""

    async def save_tickets(self, tickets: Sequence[TicketRecord]) -> None:
        """Persist all tickets of one order."""
        ...
