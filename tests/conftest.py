"""Shared fixtures for the reservation engine test suite."""

from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from ticket_reservation.availability.tracker import AvailabilityTracker
from ticket_reservation.collaborators.memory import (
    InMemorySupplyLedger,
    InMemoryTicketSink,
    LocalTokenIssuer,
    TicketRecordVerifier,
)
from ticket_reservation.config import EngineConfig
from ticket_reservation.engine import ReservationEngine
from ticket_reservation.observability.collector import UnifiedMetricsCollector
from ticket_reservation.reservation.manager import ReservationManager
from ticket_reservation.stores.memory import MemoryStore

EVENT = "evt-1"
TICKET_TYPE = "ga"
BUYER = "0xBuyerAddress"
VALID_PROOF = "0x" + "ab" * 32


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    # Timers run on the real loop clock; tests drive expiry via the sweep
    return EngineConfig(arm_timers=False, recover_on_start=False)


@pytest.fixture
def metrics():
    return UnifiedMetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def store():
    return MemoryStore(namespace="test")


@pytest.fixture
async def ledger():
    ledger = InMemorySupplyLedger()
    await ledger.set_supply(EVENT, TICKET_TYPE, total_supply=100, unit_price="25.00")
    return ledger


@pytest.fixture
def tracker(ledger, store, config, metrics, clock):
    return AvailabilityTracker(
        ledger=ledger, store=store, config=config, metrics_collector=metrics, clock=clock
    )


@pytest.fixture
def manager(store, tracker, config, metrics, clock):
    return ReservationManager(
        store=store,
        tracker=tracker,
        config=config,
        metrics_collector=metrics,
        clock=clock,
    )


@pytest.fixture
def sink():
    return InMemoryTicketSink()


@pytest.fixture
def issuer():
    return LocalTokenIssuer()


@pytest.fixture
def engine(store, ledger, issuer, sink, config, metrics, clock):
    return ReservationEngine(
        store=store,
        ledger=ledger,
        issuer=issuer,
        sink=sink,
        verifier=TicketRecordVerifier(sink),
        config=config,
        metrics_collector=metrics,
        clock=clock,
    )
