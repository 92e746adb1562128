"""Unit tests for the TicketingAPI envelope layer."""

from unittest.mock import AsyncMock

import pytest

from ticket_reservation.api import ApiResponse, TicketingAPI

EVENT = "evt-1"
TICKET_TYPE = "ga"
BUYER = "0xBuyer"
VALID_PROOF = "0x" + "ab" * 32


@pytest.fixture
def api(engine):
    return TicketingAPI(engine)


async def _hold(api, quantity=2, buyer=BUYER):
    response = await api.create_hold(EVENT, TICKET_TYPE, quantity, buyer)
    assert response.ok, response.error
    return response.data


class TestEnvelope:
    def test_success(self):
        response = ApiResponse.success({"a": 1})
        assert response.ok
        assert response.error is None
        assert response.warnings == []

    @pytest.mark.asyncio
    async def test_engine_error_maps_to_kind(self, api):
        response = await api.get_hold("missing")
        assert not response.ok
        assert response.data is None
        assert response.error.kind == "not_found"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, api, engine, caplog):
        engine.reservations.get = AsyncMock(side_effect=RuntimeError("db password=x"))

        response = await api.get_hold("r-1")

        assert response.error.kind == "internal"
        assert response.error.reason == "An internal error occurred"
        assert "password" not in response.error.reason
        assert "Unexpected error in get_hold" in caplog.text

    @pytest.mark.asyncio
    async def test_render_error_is_internal(self, api, engine):
        class BrokenView:
            def to_dict(self):
                raise ValueError("not serializable")

        engine.reservations.get = AsyncMock(return_value=BrokenView())

        response = await api.get_hold("r-1")

        assert not response.ok
        assert response.error.kind == "internal"


class TestHolds:
    @pytest.mark.asyncio
    async def test_create_hold(self, api):
        data = await _hold(api)
        assert data["status"] == "reserved"
        assert data["quantity"] == 2
        assert data["unit_price"] == "25.00"

    @pytest.mark.asyncio
    async def test_create_hold_validation(self, api):
        response = await api.create_hold(EVENT, TICKET_TYPE, 0, BUYER)
        assert response.error.kind == "invalid_request"

    @pytest.mark.asyncio
    async def test_create_hold_over_supply(self, api, ledger):
        await ledger.set_supply(EVENT, "vip", total_supply=3, unit_price="80.00")
        response = await api.create_hold(EVENT, "vip", 4, BUYER)
        assert response.error.kind == "insufficient_inventory"

    @pytest.mark.asyncio
    async def test_finalize_hold(self, api):
        hold = await _hold(api)
        response = await api.finalize_hold(hold["id"], VALID_PROOF)
        assert response.ok
        assert response.data["degraded"] is False
        assert len(response.data["token_ids"]) == 2
        assert response.warnings == []

    @pytest.mark.asyncio
    async def test_finalize_hold_degraded_warns(self, api, issuer):
        issuer.issue_tokens = AsyncMock(side_effect=TimeoutError())
        hold = await _hold(api)

        response = await api.finalize_hold(hold["id"], VALID_PROOF)

        assert response.ok
        assert response.data["degraded"] is True
        assert response.warnings == ["issuance_degraded"]

    @pytest.mark.asyncio
    async def test_finalize_hold_bad_proof(self, api):
        hold = await _hold(api)
        response = await api.finalize_hold(hold["id"], "nope")
        assert response.error.kind == "payment_rejected"

    @pytest.mark.asyncio
    async def test_cancel_then_get(self, api):
        hold = await _hold(api)
        cancelled = await api.cancel_hold(hold["id"])
        assert cancelled.data["status"] == "cancelled"

        again = await api.cancel_hold(hold["id"])
        assert again.error.kind == "invalid_state"

        view = await api.get_hold(hold["id"])
        assert view.data["status"] == "cancelled"
        assert view.data["time_left_seconds"] == 0

    @pytest.mark.asyncio
    async def test_list_holds_for_buyer(self, api):
        await _hold(api)
        await _hold(api, buyer="0xOther")
        response = await api.list_holds_for_buyer(BUYER, status="reserved")
        assert response.data["total"] == 1
        assert response.data["items"][0]["buyer_address"] == BUYER

    @pytest.mark.asyncio
    async def test_list_holds_unknown_status(self, api):
        response = await api.list_holds_for_buyer(BUYER, status="pending")
        assert response.error.kind == "invalid_request"

    @pytest.mark.asyncio
    async def test_list_holds_paged(self, api):
        for _ in range(3):
            await _hold(api, quantity=1)
        response = await api.list_holds(EVENT, page=2, page_size=2)
        assert response.data["total"] == 3
        assert response.data["page"] == 2
        assert response.data["total_pages"] == 2
        assert len(response.data["items"]) == 1


class TestAvailabilityAndAdmin:
    @pytest.mark.asyncio
    async def test_get_availability(self, api):
        await _hold(api, quantity=3)
        response = await api.get_availability(EVENT, TICKET_TYPE)
        assert response.data["available_count"] == 97

    @pytest.mark.asyncio
    async def test_get_availability_unknown_type(self, api):
        response = await api.get_availability(EVENT, "vip")
        assert response.error.kind == "not_found"

    @pytest.mark.asyncio
    async def test_sweep_expired(self, api, clock):
        await _hold(api)
        clock.advance(3600)
        response = await api.sweep_expired()
        assert response.data == {"expired": 1}

    @pytest.mark.asyncio
    async def test_invalidate_availability_cache(self, api):
        await api.get_availability(EVENT, TICKET_TYPE)
        response = await api.invalidate_availability_cache()
        assert response.data == {"invalidated": 1}


class TestCheckIns:
    @pytest.mark.asyncio
    async def test_check_in_twice(self, api):
        hold = await _hold(api, quantity=1)
        sale = await api.finalize_hold(hold["id"], VALID_PROOF)
        token_id = sale.data["token_ids"][0]

        first = await api.record_check_in(token_id, "gate-1", presented_owner=BUYER)
        second = await api.record_check_in(token_id, "gate-2")

        assert first.ok and second.ok
        assert first.data["already_checked_in"] is False
        assert first.warnings == []
        assert second.data["already_checked_in"] is True
        assert second.warnings == ["already_checked_in"]
        assert second.data["transaction_ref"] == first.data["transaction_ref"]

        listed = await api.list_check_ins(EVENT)
        assert listed.data["total"] == 1
        fetched = await api.get_check_in(token_id)
        assert fetched.data["verifying_agent"] == "gate-1"

    @pytest.mark.asyncio
    async def test_check_in_unknown_token(self, api):
        response = await api.record_check_in("999", "gate-1")
        assert response.error.kind == "verification_failed"

    @pytest.mark.asyncio
    async def test_get_check_in_missing(self, api):
        response = await api.get_check_in("999")
        assert response.error.kind == "not_found"
