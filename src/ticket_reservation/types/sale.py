# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Sale and token issuance types.

Payment acceptance is the commit point of a sale. Everything after it
(token issuance, ledger update, persistence) is best-effort, and each step
that falls back is recorded as a Degradation on the SaleRecord rather than
failing the sale.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Degradation(Enum):
    """Post-commit steps that fell back instead of completing normally."""

    ISSUANCE_DEGRADED = "issuance_degraded"
    LEDGER_UPDATE_FAILED = "ledger_update_failed"
    SALE_RECORD_FAILED = "sale_record_failed"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass(frozen=True)
class IssuanceRequest:
    """Request to mint ``quantity`` ownership tokens for a buyer."""

    order_id: str
    event_id: str
    ticket_type_id: str
    quantity: int
    owner_address: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class IssuanceResult:
    """Token ids minted for an order and the reference of the mint transaction."""

    token_ids: tuple[str, ...]
    transaction_ref: str


class TicketRecord(BaseModel):
    """Finalized ticket forwarded to the persistence sink, one per token."""

    model_config = ConfigDict(frozen=True)

    token_id: str
    transaction_ref: str
    owner_address: str
    event_id: str
    ticket_type_id: str
    order_id: str
    unit_price: Decimal
    minted_at: datetime


class SaleRecord(BaseModel):
    """
    The permanent record of a completed hold.

    ``order_id`` equals the reservation id; exactly one SaleRecord exists per
    completed reservation.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    transaction_ref: str
    token_ids: tuple[str, ...]
    finalized_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    degradations: tuple[Degradation, ...] = ()

    @property
    def degraded(self) -> bool:
        """True when any post-commit step fell back."""
        return bool(self.degradations)

    @property
    def issuance_degraded(self) -> bool:
        return Degradation.ISSUANCE_DEGRADED in self.degradations


__all__ = [
    "Degradation",
    "IssuanceRequest",
    "IssuanceResult",
    "SaleRecord",
    "TicketRecord",
]
