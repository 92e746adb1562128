"""Unit tests for CheckInLedger."""

import asyncio
import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from ticket_reservation.checkin.ledger import CheckInLedger, check_in_reference
from ticket_reservation.exceptions import (
    CheckInNotFoundError,
    InvalidRequestError,
    VerificationFailedError,
)
from ticket_reservation.observability.constants import (
    CHECK_IN_VERIFICATION_FAILURES_TOTAL,
    CHECK_INS_DUPLICATE_TOTAL,
    CHECK_INS_RECORDED_TOTAL,
)
from ticket_reservation.types.checkin import TokenVerification, VerifyingInfo

TOKEN = "token-0000001234"
OWNER = "0xOwnerAddress"
GATE = VerifyingInfo(verifying_agent="gate-1")


@pytest.fixture
def verifier():
    verifier = AsyncMock()
    verifier.verify.return_value = TokenVerification(
        valid=True, owner=OWNER, event_id="evt-1"
    )
    return verifier


@pytest.fixture
def check_ins(store, verifier, metrics, clock):
    return CheckInLedger(
        store=store, verifier=verifier, metrics_collector=metrics, clock=clock
    )


def test_check_in_reference():
    at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    ref = check_in_reference("abcdefghijkl", at)
    assert ref == f"checkin-{int(at.timestamp() * 1000)}-efghijkl"


def test_check_in_reference_short_token():
    ref = check_in_reference("42", datetime(2026, 3, 1, tzinfo=timezone.utc))
    assert ref.endswith("-42")


class TestRecordCheckIn:
    @pytest.mark.asyncio
    async def test_first_check_in(self, check_ins, clock, metrics):
        outcome = await check_ins.record_check_in(TOKEN, GATE)

        assert outcome.already_checked_in is False
        record = outcome.record
        assert record.token_id == TOKEN
        assert record.event_id == "evt-1"
        assert record.verifying_agent == "gate-1"
        assert record.checked_in_at == clock.now
        assert record.verified is True
        assert re.fullmatch(r"checkin-\d+-00001234", record.transaction_ref)
        assert metrics.get_counter(CHECK_INS_RECORDED_TOTAL) == 1

    @pytest.mark.asyncio
    async def test_repeat_returns_existing_record(
        self, check_ins, store, clock, verifier, metrics
    ):
        first = await check_ins.record_check_in(TOKEN, GATE)
        clock.advance(60)
        second = await check_ins.record_check_in(
            TOKEN, VerifyingInfo(verifying_agent="gate-2")
        )

        assert second.already_checked_in is True
        assert second.record == first.record
        assert second.record.verifying_agent == "gate-1"
        assert len(await store.scan_check_ins()) == 1
        assert verifier.verify.await_count == 1
        assert metrics.get_counter(CHECK_INS_DUPLICATE_TOTAL) == 1

    @pytest.mark.asyncio
    async def test_concurrent_check_ins_store_one_record(
        self, check_ins, store, verifier
    ):
        outcomes = await asyncio.gather(
            *(check_ins.record_check_in(TOKEN, GATE) for _ in range(10))
        )

        assert sum(not o.already_checked_in for o in outcomes) == 1
        assert len({o.record.transaction_ref for o in outcomes}) == 1
        assert len(await store.scan_check_ins()) == 1
        assert verifier.verify.await_count == 1

    @pytest.mark.asyncio
    async def test_event_falls_back_to_presented_event(self, check_ins, verifier):
        verifier.verify.return_value = TokenVerification(valid=True, owner=OWNER)
        outcome = await check_ins.record_check_in(
            TOKEN, VerifyingInfo(verifying_agent="gate-1", event_id="evt-9")
        )
        assert outcome.record.event_id == "evt-9"

    @pytest.mark.asyncio
    async def test_owner_match_is_case_insensitive(self, check_ins):
        outcome = await check_ins.record_check_in(
            TOKEN,
            VerifyingInfo(verifying_agent="gate-1", presented_owner=OWNER.lower()),
        )
        assert outcome.record.presented_owner == OWNER.lower()

    @pytest.mark.asyncio
    async def test_lost_race_in_store_is_duplicate(self, check_ins, store):
        other = CheckInLedger(store=store, verifier=check_ins._verifier)
        await other.record_check_in(TOKEN, VerifyingInfo(verifying_agent="gate-9"))

        # Bypass the existence check to hit the conditional insert
        store.get_check_in = AsyncMock(return_value=None)
        outcome = await check_ins.record_check_in(TOKEN, GATE)

        assert outcome.already_checked_in is True
        assert outcome.record.verifying_agent == "gate-9"


class TestRecordCheckInFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("token_id", ["", "   "])
    async def test_blank_token(self, check_ins, token_id):
        with pytest.raises(InvalidRequestError):
            await check_ins.record_check_in(token_id, GATE)

    @pytest.mark.asyncio
    async def test_blank_agent(self, check_ins):
        with pytest.raises(InvalidRequestError):
            await check_ins.record_check_in(TOKEN, VerifyingInfo(verifying_agent=" "))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "verification,info,detail",
        [
            (
                TokenVerification(valid=False, detail="Unknown token"),
                GATE,
                "Unknown token",
            ),
            (TokenVerification(valid=False), GATE, "Ticket is not valid"),
            (
                TokenVerification(valid=True, owner=OWNER, already_used=True),
                GATE,
                "Ticket has already been used",
            ),
            (
                TokenVerification(valid=True, owner=OWNER),
                VerifyingInfo(verifying_agent="gate-1", presented_owner="0xSomeoneElse"),
                "Ticket owner does not match",
            ),
            (
                TokenVerification(valid=True, owner=OWNER, event_id="evt-1"),
                VerifyingInfo(verifying_agent="gate-1", event_id="evt-2"),
                "Ticket is not valid for this event",
            ),
        ],
    )
    async def test_refused(
        self, check_ins, store, verifier, metrics, verification, info, detail
    ):
        verifier.verify.return_value = verification

        with pytest.raises(VerificationFailedError) as exc_info:
            await check_ins.record_check_in(TOKEN, info)

        assert exc_info.value.reason == detail
        assert await store.get_check_in(TOKEN) is None
        assert metrics.get_counter(CHECK_IN_VERIFICATION_FAILURES_TOTAL) == 1

    @pytest.mark.asyncio
    async def test_verifier_error(self, check_ins, store, verifier):
        verifier.verify.side_effect = ConnectionError("chain unreachable")

        with pytest.raises(VerificationFailedError) as exc_info:
            await check_ins.record_check_in(TOKEN, GATE)

        assert exc_info.value.reason == "Ticket could not be verified"
        assert await store.get_check_in(TOKEN) is None

    @pytest.mark.asyncio
    async def test_refusal_does_not_block_later_check_in(self, check_ins, verifier):
        verifier.verify.side_effect = [
            ConnectionError("chain unreachable"),
            TokenVerification(valid=True, owner=OWNER, event_id="evt-1"),
        ]
        with pytest.raises(VerificationFailedError):
            await check_ins.record_check_in(TOKEN, GATE)

        outcome = await check_ins.record_check_in(TOKEN, GATE)
        assert outcome.already_checked_in is False


class TestQueries:
    @pytest.mark.asyncio
    async def test_get(self, check_ins):
        outcome = await check_ins.record_check_in(TOKEN, GATE)
        assert await check_ins.get(TOKEN) == outcome.record

    @pytest.mark.asyncio
    async def test_get_missing(self, check_ins):
        with pytest.raises(CheckInNotFoundError):
            await check_ins.get("never-seen")

    @pytest.mark.asyncio
    async def test_list_for_event(self, check_ins, verifier, clock):
        await check_ins.record_check_in("token-a", GATE)
        clock.advance(5)
        await check_ins.record_check_in("token-b", GATE)
        verifier.verify.return_value = TokenVerification(
            valid=True, owner=OWNER, event_id="evt-2"
        )
        await check_ins.record_check_in("token-c", GATE)

        records = await check_ins.list_for_event("evt-1")

        assert [r.token_id for r in records] == ["token-b", "token-a"]
        assert await check_ins.list_for_event("evt-3") == []
