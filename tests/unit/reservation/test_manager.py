"""Unit tests for ReservationManager."""

import asyncio
from datetime import timedelta

import pytest

from ticket_reservation.config import EngineConfig
from ticket_reservation.exceptions import (
    InsufficientInventoryError,
    InvalidRequestError,
    InvalidStateError,
    PaymentRejectedError,
    ReservationExpiredError,
    ReservationNotFoundError,
)
from ticket_reservation.observability.constants import (
    HOLDS_ACTIVE,
    HOLDS_CREATED_TOTAL,
    HOLDS_EXPIRED_TOTAL,
    HOLDS_REJECTED_TOTAL,
)
from ticket_reservation.reservation.manager import ReservationManager
from ticket_reservation.types.availability import AvailabilityKey
from ticket_reservation.types.reservation import ReservationStatus

EVENT = "evt-1"
TICKET_TYPE = "ga"
BUYER = "0xBuyer"
KEY = AvailabilityKey(EVENT, TICKET_TYPE)


def accept(reservation):
    return None


def reject(reservation):
    raise PaymentRejectedError(reservation.id)


class TestReserve:
    @pytest.mark.asyncio
    async def test_reserve_creates_hold(self, manager, tracker, clock, metrics):
        before = await tracker.get(EVENT, TICKET_TYPE)
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 2, BUYER)

        assert reservation.status is ReservationStatus.RESERVED
        assert reservation.expires_at == clock() + timedelta(minutes=15)
        assert reservation.total_price == before.unit_price * 2
        after = await tracker.get(EVENT, TICKET_TYPE)
        assert after.available_count == before.available_count - 2
        assert metrics.get_counter(HOLDS_CREATED_TOTAL, {"event_id": EVENT}) == 1
        assert metrics.get_gauge(HOLDS_ACTIVE, {"event_id": EVENT}) == 1

    @pytest.mark.asyncio
    async def test_insufficient_inventory_mutates_nothing(
        self, manager, ledger, tracker, store, metrics
    ):
        await ledger.set_supply(EVENT, TICKET_TYPE, total_supply=3, unit_price="5")
        await manager.reserve(EVENT, TICKET_TYPE, 2, BUYER)

        with pytest.raises(InsufficientInventoryError) as exc_info:
            await manager.reserve(EVENT, TICKET_TYPE, 2, BUYER)
        assert exc_info.value.available == 1
        assert (await tracker.get(EVENT, TICKET_TYPE)).available_count == 1
        assert len(await store.scan_reservations()) == 1
        assert (
            metrics.get_counter(
                HOLDS_REJECTED_TOTAL,
                {"event_id": EVENT, "reason": "insufficient_inventory"},
            )
            == 1
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, 6, -1, 2.0, True, "2"])
    async def test_invalid_quantity(self, manager, quantity):
        with pytest.raises(InvalidRequestError):
            await manager.reserve(EVENT, TICKET_TYPE, quantity, BUYER)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "args",
        [("", TICKET_TYPE, BUYER), (EVENT, " ", BUYER), (EVENT, TICKET_TYPE, "")],
    )
    async def test_blank_identifiers(self, manager, args):
        event_id, ticket_type_id, buyer = args
        with pytest.raises(InvalidRequestError):
            await manager.reserve(event_id, ticket_type_id, 1, buyer)

    @pytest.mark.asyncio
    async def test_concurrent_reserves_never_oversell(self, manager, ledger, store):
        await ledger.set_supply(EVENT, TICKET_TYPE, total_supply=10, unit_price="5")

        results = await asyncio.gather(
            *(manager.reserve(EVENT, TICKET_TYPE, 3, f"0x{i}") for i in range(8)),
            return_exceptions=True,
        )
        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]

        assert len(successes) == 3
        assert all(isinstance(f, InsufficientInventoryError) for f in failures)
        held = sum(r.quantity for r in await store.scan_reservations())
        assert held == 9


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_returns_units(self, manager, tracker):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 2, BUYER)
        cancelled = await manager.cancel(reservation.id)
        assert cancelled.status is ReservationStatus.CANCELLED
        assert cancelled.closed_at is not None
        assert (await tracker.get(EVENT, TICKET_TYPE)).available_count == 100

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, manager):
        with pytest.raises(ReservationNotFoundError):
            await manager.cancel("missing")

    @pytest.mark.asyncio
    async def test_cancel_twice(self, manager):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        await manager.cancel(reservation.id)
        with pytest.raises(InvalidStateError):
            await manager.cancel(reservation.id)

    @pytest.mark.asyncio
    async def test_cancel_completed(self, manager):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        await manager.finalize(reservation.id, accept)
        with pytest.raises(InvalidStateError) as exc_info:
            await manager.cancel(reservation.id)
        assert exc_info.value.status == "completed"


class TestGet:
    @pytest.mark.asyncio
    async def test_time_left_is_server_computed(self, manager, clock):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(60)
        view = await manager.get(reservation.id)
        assert view.reservation == reservation
        assert view.time_left_seconds == 840

    @pytest.mark.asyncio
    async def test_time_left_is_zero_past_deadline(self, manager, clock):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(3600)
        assert (await manager.get(reservation.id)).time_left_seconds == 0

    @pytest.mark.asyncio
    async def test_time_left_is_zero_for_terminal(self, manager):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        await manager.cancel(reservation.id)
        assert (await manager.get(reservation.id)).time_left_seconds == 0

    @pytest.mark.asyncio
    async def test_get_unknown(self, manager):
        with pytest.raises(ReservationNotFoundError):
            await manager.get("missing")


class TestExpiry:
    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, manager, metrics):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        assert await manager.release(reservation.id) is True
        assert await manager.release(reservation.id, trigger="sweep") is False
        assert (await manager.get(reservation.id)).reservation.status is (
            ReservationStatus.EXPIRED
        )
        assert (
            metrics.get_counter(
                HOLDS_EXPIRED_TOTAL, {"event_id": EVENT, "trigger": "timer"}
            )
            == 1
        )

    @pytest.mark.asyncio
    async def test_release_missing_or_terminal_is_silent(self, manager):
        assert await manager.release("missing") is False
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        await manager.cancel(reservation.id)
        assert await manager.release(reservation.id) is False

    @pytest.mark.asyncio
    async def test_sweep_expires_only_overdue(self, manager, clock, tracker):
        old = await manager.reserve(EVENT, TICKET_TYPE, 2, BUYER)
        clock.advance(600)
        young = await manager.reserve(EVENT, TICKET_TYPE, 3, BUYER)
        clock.advance(301)

        assert await manager.sweep_expired() == 1
        assert (await manager.get(old.id)).reservation.status is (
            ReservationStatus.EXPIRED
        )
        assert (await manager.get(young.id)).reservation.is_active
        assert (await tracker.get(EVENT, TICKET_TYPE)).available_count == 97

    @pytest.mark.asyncio
    async def test_sweep_and_release_race(self, manager, clock, store):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(901)
        results = await asyncio.gather(
            manager.release(reservation.id), manager.sweep_expired()
        )
        assert sum(int(r) for r in results) == 1
        expired = await store.scan_reservations(status=ReservationStatus.EXPIRED)
        assert len(expired) == 1


class TestFinalize:
    @pytest.mark.asyncio
    async def test_finalize_completes_and_settles(self, manager, tracker):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 2, BUYER)
        completed = await manager.finalize(reservation.id, accept)
        assert completed.status is ReservationStatus.COMPLETED
        assert tracker.settling(KEY) == 2
        snapshot = await tracker.get(EVENT, TICKET_TYPE)
        assert snapshot.active_reserved_count == 0
        assert snapshot.available_count == 98

    @pytest.mark.asyncio
    async def test_finalize_twice(self, manager):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        await manager.finalize(reservation.id, accept)
        with pytest.raises(InvalidStateError):
            await manager.finalize(reservation.id, accept)

    @pytest.mark.asyncio
    async def test_finalize_after_deadline_expires_hold(self, manager, clock):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(901)
        with pytest.raises(ReservationExpiredError):
            await manager.finalize(reservation.id, accept)
        view = await manager.get(reservation.id)
        assert view.reservation.status is ReservationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_expiry_checked_before_payment(self, manager, clock):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(901)
        with pytest.raises(ReservationExpiredError):
            await manager.finalize(reservation.id, reject)

    @pytest.mark.asyncio
    async def test_rejected_payment_leaves_hold_reserved(self, manager, tracker):
        reservation = await manager.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        with pytest.raises(PaymentRejectedError):
            await manager.finalize(reservation.id, reject)
        assert (await manager.get(reservation.id)).reservation.is_active
        assert tracker.settling(KEY) == 0

    @pytest.mark.asyncio
    async def test_finalize_unknown(self, manager):
        with pytest.raises(ReservationNotFoundError):
            await manager.finalize("missing", accept)


class TestListings:
    @pytest.fixture
    async def holds(self, manager, clock):
        created = []
        for i in range(5):
            buyer = BUYER if i % 2 == 0 else "0xOther"
            created.append(await manager.reserve(EVENT, TICKET_TYPE, 1, buyer))
            clock.advance(1)
        return created

    @pytest.mark.asyncio
    async def test_list_for_buyer(self, manager, holds):
        page = await manager.list_for_buyer(BUYER.lower(), limit=2)
        assert page.total == 3
        assert [v.reservation.id for v in page.items] == [holds[4].id, holds[2].id]

        rest = await manager.list_for_buyer(BUYER, limit=2, offset=2)
        assert [v.reservation.id for v in rest.items] == [holds[0].id]

    @pytest.mark.asyncio
    async def test_list_for_buyer_status_filter(self, manager, holds):
        await manager.cancel(holds[0].id)
        page = await manager.list_for_buyer(
            BUYER, status=ReservationStatus.CANCELLED
        )
        assert [v.reservation.id for v in page.items] == [holds[0].id]
        assert page.limit == 10

    @pytest.mark.asyncio
    async def test_list_all_pages(self, manager, holds):
        page = await manager.list_all(event_id=EVENT, page=2, page_size=2)
        assert page.total == 5
        assert page.total_pages == 3
        assert page.page == 2
        assert [v.reservation.id for v in page.items] == [holds[2].id, holds[1].id]

    @pytest.mark.asyncio
    async def test_list_all_empty(self, manager):
        page = await manager.list_all(event_id="nothing")
        assert page.items == []
        assert page.total_pages == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs", [{"page": 0}, {"page_size": 0}, {"page_size": 101}]
    )
    async def test_list_all_invalid_paging(self, manager, kwargs):
        with pytest.raises(InvalidRequestError):
            await manager.list_all(**kwargs)

    @pytest.mark.asyncio
    async def test_list_for_buyer_invalid_paging(self, manager):
        with pytest.raises(InvalidRequestError):
            await manager.list_for_buyer(BUYER, offset=-1)
        with pytest.raises(InvalidRequestError):
            await manager.list_for_buyer(BUYER, limit=0)


class TestRecover:
    @pytest.mark.asyncio
    async def test_recover_expires_overdue_and_rearms(
        self, store, tracker, metrics, clock
    ):
        config = EngineConfig(arm_timers=False)
        first = ReservationManager(store, tracker, config=config, clock=clock)
        overdue = await first.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(600)
        live = await first.reserve(EVENT, TICKET_TYPE, 1, BUYER)
        clock.advance(301)

        # A fresh manager over the same store, as after a restart
        restarted = ReservationManager(
            store, tracker, config=EngineConfig(), metrics_collector=metrics, clock=clock
        )
        assert await restarted.recover() == 1
        assert (await restarted.get(overdue.id)).reservation.status is (
            ReservationStatus.EXPIRED
        )
        assert restarted.scheduler.armed_count == 1
        assert restarted.scheduler.timer_state(live.id) is not None
        await restarted.scheduler.stop()
