# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for the token issuance service."""

from typing import Protocol, runtime_checkable

from ..types.sale import IssuanceRequest, IssuanceResult


@runtime_checkable
class TokenIssuerProtocol(Protocol):
    """
    Mints one ownership token per sold unit.

    Implementations may fail or be slow; the fulfillment orchestrator
    degrades to placeholder token ids instead of undoing the sale.
    """

    async def issue_tokens(self, request: IssuanceRequest) -> IssuanceResult:
        """Mint ``request.quantity`` tokens for ``request.owner_address``."""
        ...
