# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""CheckInLedger: idempotent record of tokens presented for entry."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import NoReturn

from ..exceptions import (
    CheckInNotFoundError,
    InvalidRequestError,
    VerificationFailedError,
)
from ..locks import KeyedLock
from ..observability.constants import (
    CHECK_IN_VERIFICATION_FAILURES_TOTAL,
    CHECK_INS_DUPLICATE_TOTAL,
    CHECK_INS_RECORDED_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from ..protocols.verification import TokenVerifierProtocol
from ..stores.base import BaseStore
from ..types.checkin import (
    CheckInOutcome,
    CheckInRecord,
    TokenVerification,
    VerifyingInfo,
)
from ..types.reservation import utc_now

logger = logging.getLogger(__name__)


def check_in_reference(token_id: str, at: datetime) -> str:
    """Reference of a check-in: ``checkin-<epoch ms>-<last 8 chars of token>``."""
    return f"checkin-{int(at.timestamp() * 1000)}-{token_id[-8:]}"


class CheckInLedger:
    """
    Records at most one check-in per token.

    Independent of the sale path: it consults only the store and the
    external verifier. Attempts for the same token are serialized, so two
    concurrent first check-ins verify once and store one record.
    """

    def __init__(
        self,
        store: BaseStore,
        verifier: TokenVerifierProtocol,
        metrics_collector: MetricsCollectorProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._verifier = verifier
        self._metrics_collector = metrics_collector
        self._clock = clock
        self._locks = KeyedLock()

    async def record_check_in(
        self, token_id: str, info: VerifyingInfo
    ) -> CheckInOutcome:
        """
        Check ``token_id`` in, or return its existing record.

        Raises:
            InvalidRequestError: If the token id or verifying agent is blank.
            VerificationFailedError: If the token cannot be verified. No
                record is created.
        """
        if not isinstance(token_id, str) or not token_id.strip():
            raise InvalidRequestError("token_id is required")
        if not info.verifying_agent or not info.verifying_agent.strip():
            raise InvalidRequestError("verifying_agent is required")

        async with self._locks.hold(token_id):
            existing = await self._store.get_check_in(token_id)
            if existing is not None:
                return self._duplicate(existing)

            verification = await self._verify(token_id)
            self._check(token_id, info, verification)

            now = self._clock()
            record = CheckInRecord(
                token_id=token_id,
                event_id=verification.event_id or info.event_id,
                checked_in_at=now,
                verifying_agent=info.verifying_agent,
                transaction_ref=check_in_reference(token_id, now),
                presented_owner=info.presented_owner,
                verified=True,
            )
            stored, created = await self._store.put_check_in_if_absent(record)

        if not created:
            # Another process checked the token in first
            return self._duplicate(stored)

        if self._metrics_collector:
            self._metrics_collector.inc_counter(CHECK_INS_RECORDED_TOTAL)
        logger.info(f"Token {token_id} checked in by {info.verifying_agent}")
        return CheckInOutcome(record=stored, already_checked_in=False)

    async def get(self, token_id: str) -> CheckInRecord:
        """
        Raises:
            CheckInNotFoundError: If the token was never checked in.
        """
        record = await self._store.get_check_in(token_id)
        if record is None:
            raise CheckInNotFoundError(token_id)
        return record

    async def list_for_event(self, event_id: str) -> list[CheckInRecord]:
        """Check-ins recorded for ``event_id``, newest first."""
        return await self._store.scan_check_ins(event_id=event_id)

    async def _verify(self, token_id: str) -> TokenVerification:
        try:
            return await self._verifier.verify(token_id)
        except Exception as e:
            logger.warning(f"Token verifier failed for {token_id}: {e}")
            self._fail(token_id, "Ticket could not be verified")

    def _check(
        self, token_id: str, info: VerifyingInfo, verification: TokenVerification
    ) -> None:
        if not verification.valid:
            self._fail(token_id, verification.detail or "Ticket is not valid")
        if verification.already_used:
            self._fail(token_id, "Ticket has already been used")
        if (
            info.presented_owner
            and verification.owner
            and info.presented_owner.lower() != verification.owner.lower()
        ):
            self._fail(token_id, "Ticket owner does not match")
        if (
            info.event_id
            and verification.event_id
            and info.event_id != verification.event_id
        ):
            self._fail(token_id, "Ticket is not valid for this event")

    def _fail(self, token_id: str, detail: str) -> NoReturn:
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CHECK_IN_VERIFICATION_FAILURES_TOTAL)
        logger.info(f"Check-in refused for {token_id}: {detail}")
        raise VerificationFailedError(token_id, detail)

    def _duplicate(self, record: CheckInRecord) -> CheckInOutcome:
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CHECK_INS_DUPLICATE_TOTAL)
        logger.debug(f"Token {record.token_id} already checked in")
        return CheckInOutcome(record=record, already_checked_in=True)


__all__ = ["CheckInLedger", "check_in_reference"]
