# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
ReservationEngine: wires the components together and owns their lifecycle.

Example:
    >>> ledger = InMemorySupplyLedger()
    >>> await ledger.set_supply("evt-1", "ga", total_supply=100, unit_price="25.00")
    >>> async with ReservationEngine(ledger=ledger) as engine:
    ...     hold = await engine.reservations.reserve("evt-1", "ga", 2, "0xabc")
    ...     sale = await engine.fulfillment.complete(hold.id, proof)
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from typing_extensions import Self

from .availability.tracker import AvailabilityTracker
from .checkin.ledger import CheckInLedger
from .collaborators.memory import (
    InMemorySupplyLedger,
    InMemoryTicketSink,
    LocalTokenIssuer,
    TicketRecordVerifier,
)
from .config import EngineConfig
from .exceptions import ConfigurationError
from .fulfillment.orchestrator import FulfillmentOrchestrator
from .fulfillment.payment import PaymentProofPolicy
from .locks import KeyedLock
from .observability.collector import get_metrics_collector
from .observability.protocols import MetricsCollectorProtocol
from .protocols.issuance import TokenIssuerProtocol
from .protocols.ledger import SupplyLedgerProtocol
from .protocols.persistence import PersistenceSinkProtocol
from .protocols.verification import TokenVerifierProtocol
from .reservation.manager import ReservationManager
from .scheduler.expiration import ExpirationScheduler
from .stores.base import BaseStore
from .stores.memory import MemoryStore
from .types.reservation import utc_now

logger = logging.getLogger(__name__)


class ReservationEngine:
    """
    The inventory reservation and fulfillment engine.

    Every collaborator is optional and defaults to its in-process reference
    implementation, which is enough for tests and single-process use. A
    custom ``sink`` needs a matching ``verifier``.

    Components:
        availability: AvailabilityTracker
        reservations: ReservationManager (owns the ExpirationScheduler)
        fulfillment: FulfillmentOrchestrator
        check_ins: CheckInLedger
    """

    def __init__(
        self,
        store: BaseStore | None = None,
        ledger: SupplyLedgerProtocol | None = None,
        issuer: TokenIssuerProtocol | None = None,
        sink: PersistenceSinkProtocol | None = None,
        verifier: TokenVerifierProtocol | None = None,
        config: EngineConfig | None = None,
        metrics_collector: MetricsCollectorProtocol | None = None,
        payment_policy: PaymentProofPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or EngineConfig()

        if metrics_collector is None and self.config.metrics_enabled:
            metrics_collector = get_metrics_collector()
        self.metrics_collector = (
            metrics_collector if self.config.metrics_enabled else None
        )

        if verifier is None:
            if sink is not None and not isinstance(sink, InMemoryTicketSink):
                raise ConfigurationError("A custom sink requires a token verifier")
            if sink is None:
                sink = InMemoryTicketSink()
            verifier = TicketRecordVerifier(sink)

        # Only a store created here is closed by stop()
        self._owns_store = store is None
        self.store = (
            store if store is not None else MemoryStore(self.config.namespace)
        )
        self.ledger = ledger if ledger is not None else InMemorySupplyLedger()
        self.issuer = issuer if issuer is not None else LocalTokenIssuer()
        self.sink = sink if sink is not None else InMemoryTicketSink()
        self.verifier = verifier
        self.locks = KeyedLock()

        self.availability = AvailabilityTracker(
            ledger=self.ledger,
            store=self.store,
            config=self.config,
            metrics_collector=self.metrics_collector,
            clock=clock,
        )
        self.reservations = ReservationManager(
            store=self.store,
            tracker=self.availability,
            locks=self.locks,
            config=self.config,
            metrics_collector=self.metrics_collector,
            clock=clock,
        )
        self.fulfillment = FulfillmentOrchestrator(
            manager=self.reservations,
            tracker=self.availability,
            store=self.store,
            ledger=self.ledger,
            issuer=self.issuer,
            sink=self.sink,
            config=self.config,
            metrics_collector=self.metrics_collector,
            payment_policy=payment_policy,
            clock=clock,
        )
        self.check_ins = CheckInLedger(
            store=self.store,
            verifier=self.verifier,
            metrics_collector=self.metrics_collector,
            clock=clock,
        )

        self._running = False
        self._lifecycle_lock = asyncio.Lock()

    @property
    def scheduler(self) -> ExpirationScheduler:
        return self.reservations.scheduler

    async def start(self) -> None:
        """Recover pending expirations, then start the expiry sweep."""
        async with self._lifecycle_lock:
            if self._running:
                return
            if self.config.recover_on_start:
                await self.reservations.recover()
            await self.scheduler.start()
            self._running = True
            logger.info("ReservationEngine started")

    async def stop(self) -> None:
        """Stop the sweep, cancel timers and close an engine-created store."""
        async with self._lifecycle_lock:
            if not self._running:
                return
            self._running = False
            await self.scheduler.stop()
            if self._owns_store:
                try:
                    await self.store.close()
                except Exception as e:
                    logger.error(f"Error closing store: {e}")
            logger.info("ReservationEngine stopped")

    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.stop()


__all__ = ["ReservationEngine"]
