# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Check-in types.

A check-in records that an issued token was presented for entry. At most
one CheckInRecord exists per token.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class VerifyingInfo:
    """
    Who is checking a token in, and what the holder claims.

    Attributes:
        verifying_agent: Identifier of the scanner/staff member.
        presented_owner: Owner address shown by the holder, if any.
        event_id: Event the token is presented at, if known to the caller.
    """

    verifying_agent: str
    presented_owner: str | None = None
    event_id: str | None = None


@dataclass(frozen=True)
class TokenVerification:
    """
    Answer from the external token verifier.

    Attributes:
        valid: Whether the token exists and is genuine.
        owner: Current owner address of the token.
        event_id: Event the token was issued for.
        already_used: Whether the issuing side already marks it as used.
        detail: Short explanation when not valid.
    """

    valid: bool
    owner: str | None = None
    event_id: str | None = None
    already_used: bool = False
    detail: str | None = None


class CheckInRecord(BaseModel):
    """Durable record of the first successful check-in of a token."""

    model_config = ConfigDict(frozen=True)

    token_id: str
    event_id: str | None = None
    checked_in_at: datetime
    verifying_agent: str
    transaction_ref: str
    presented_owner: str | None = None
    verified: bool = True


@dataclass(frozen=True)
class CheckInOutcome:
    """
    Result of a check-in attempt.

    ``already_checked_in`` is an informational, non-error outcome: the
    returned record is the existing one, unchanged.
    """

    record: CheckInRecord
    already_checked_in: bool = False


__all__ = [
    "CheckInOutcome",
    "CheckInRecord",
    "TokenVerification",
    "VerifyingInfo",
]
