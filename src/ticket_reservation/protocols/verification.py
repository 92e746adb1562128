# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for external token verification used at check-in."""

from typing import Protocol, runtime_checkable

from ..types.checkin import TokenVerification


@runtime_checkable
class TokenVerifierProtocol(Protocol):
    """Confirms that a presented token exists and who owns it."""

    async def verify(self, token_id: str) -> TokenVerification:
        """Look the token up on the issuing side."""
        ...
