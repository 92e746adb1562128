# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
FulfillmentOrchestrator: turns a paid hold into a sale.

Payment acceptance is the commit point. Once the hold is ``completed``
nothing rolls it back: token issuance, the ledger update, the sale record
and ticket persistence each fall back on failure, and the fallback is
reported as a Degradation on the returned SaleRecord.
"""

import logging
import secrets
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from ..availability.tracker import AvailabilityTracker
from ..config import EngineConfig
from ..exceptions import PaymentRejectedError
from ..observability.constants import (
    FULFILLMENT_DURATION_SECONDS,
    PAYMENT_REJECTIONS_TOTAL,
    SALES_DEGRADED_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from ..protocols.issuance import TokenIssuerProtocol
from ..protocols.ledger import SupplyLedgerProtocol
from ..protocols.persistence import PersistenceSinkProtocol
from ..reservation.manager import ReservationManager
from ..stores.base import BaseStore
from ..types.reservation import Reservation, utc_now
from ..types.sale import (
    Degradation,
    IssuanceRequest,
    IssuanceResult,
    SaleRecord,
    TicketRecord,
)
from .payment import DefaultPaymentProofPolicy, PaymentProofPolicy

logger = logging.getLogger(__name__)

PROOF_LOG_LENGTH = 20


def _redact(proof: object) -> str:
    return f"{str(proof)[:PROOF_LOG_LENGTH]}..."


class FulfillmentOrchestrator:
    """
    Validates a hold, commits it, and runs the post-commit steps.

    None of the collaborator calls run inside a per-key critical section;
    only the final settlement bookkeeping re-acquires the key to
    invalidate availability.

    Args:
        manager: Reservation manager owning the hold state machine.
        tracker: Availability tracker to settle sold units against.
        store: Store for SaleRecords.
        ledger: Supply ledger receiving the sold-count increment.
        issuer: Token issuance service.
        sink: Persistence sink for finalized tickets.
        config: Engine configuration.
        metrics_collector: Optional metrics sink.
        payment_policy: Payment proof policy; defaults to the shape-only
            placeholder policy.
        clock: Wall clock for timestamps.
    """

    def __init__(
        self,
        manager: ReservationManager,
        tracker: AvailabilityTracker,
        store: BaseStore,
        ledger: SupplyLedgerProtocol,
        issuer: TokenIssuerProtocol,
        sink: PersistenceSinkProtocol,
        config: EngineConfig | None = None,
        metrics_collector: MetricsCollectorProtocol | None = None,
        payment_policy: PaymentProofPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or EngineConfig()
        self._manager = manager
        self._tracker = tracker
        self._store = store
        self._ledger = ledger
        self._issuer = issuer
        self._sink = sink
        self._metrics_collector = metrics_collector
        self.payment_policy = payment_policy or DefaultPaymentProofPolicy()
        self._clock = clock

    async def complete(self, order_id: str, payment_proof: str) -> SaleRecord:
        """
        Finalize hold ``order_id`` paid with ``payment_proof``.

        Raises:
            ReservationNotFoundError: If the hold does not exist.
            InvalidStateError: If the hold is no longer ``reserved``.
            ReservationExpiredError: If the deadline has passed; the hold is
                driven to ``expired``.
            PaymentRejectedError: If the policy refuses the proof.

        Returns:
            The SaleRecord. Post-commit fallbacks are listed in its
            ``degradations``; they never fail the call.
        """

        def authorize(reservation: Reservation) -> None:
            if not self.payment_policy.accepts(payment_proof):
                if self._metrics_collector:
                    self._metrics_collector.inc_counter(PAYMENT_REJECTIONS_TOTAL)
                logger.warning(
                    f"Payment proof rejected for {reservation.id}: "
                    f"{_redact(payment_proof)}"
                )
                raise PaymentRejectedError(reservation.id)

        completed = await self._manager.finalize(order_id, authorize)
        started = time.perf_counter()
        logger.info(
            f"Payment accepted for {order_id} ({_redact(payment_proof)}), "
            f"issuing {completed.quantity} tokens"
        )

        degradations: list[Degradation] = []

        issuance = await self._issue(completed)
        if issuance is None:
            degradations.append(Degradation.ISSUANCE_DEGRADED)
            issuance = self._placeholder_issuance(completed.quantity)

        if not await self._settle(completed):
            degradations.append(Degradation.LEDGER_UPDATE_FAILED)

        finalized_at = self._clock()
        tickets = [
            TicketRecord(
                token_id=token_id,
                transaction_ref=issuance.transaction_ref,
                owner_address=completed.buyer_address,
                event_id=completed.event_id,
                ticket_type_id=completed.ticket_type_id,
                order_id=completed.id,
                unit_price=completed.unit_price,
                minted_at=finalized_at,
            )
            for token_id in issuance.token_ids
        ]
        try:
            await self._sink.save_tickets(tickets)
        except Exception as e:
            logger.warning(f"Ticket persistence failed for {order_id}: {e}")
            degradations.append(Degradation.PERSISTENCE_FAILED)

        sale = SaleRecord(
            order_id=completed.id,
            transaction_ref=issuance.transaction_ref,
            token_ids=issuance.token_ids,
            finalized_at=finalized_at,
            degradations=tuple(degradations),
        )
        try:
            await self._store.put_sale(sale)
        except Exception as e:
            logger.warning(f"Sale record could not be stored for {order_id}: {e}")
            sale = sale.model_copy(
                update={
                    "degradations": sale.degradations
                    + (Degradation.SALE_RECORD_FAILED,)
                }
            )

        self._record_outcome(sale, time.perf_counter() - started)
        return sale

    async def _issue(self, reservation: Reservation) -> IssuanceResult | None:
        """Mint tokens for the hold, or None if issuance must degrade."""
        request = IssuanceRequest(
            order_id=reservation.id,
            event_id=reservation.event_id,
            ticket_type_id=reservation.ticket_type_id,
            quantity=reservation.quantity,
            owner_address=reservation.buyer_address,
            metadata={
                "event_id": reservation.event_id,
                "ticket_type_id": reservation.ticket_type_id,
                "order_id": reservation.id,
            },
        )
        try:
            result = await self._issuer.issue_tokens(request)
        except Exception as e:
            logger.warning(
                f"Token issuance failed for {reservation.id}, "
                f"using placeholder tokens: {e}"
            )
            return None
        if len(result.token_ids) != reservation.quantity:
            logger.warning(
                f"Token issuance for {reservation.id} returned "
                f"{len(result.token_ids)} tokens for {reservation.quantity} units, "
                f"using placeholder tokens"
            )
            return None
        return result

    def _placeholder_issuance(self, quantity: int) -> IssuanceResult:
        prefix = self.config.placeholder_token_prefix
        return IssuanceResult(
            token_ids=tuple(f"{prefix}{uuid.uuid4()}" for _ in range(quantity)),
            transaction_ref=f"0x{secrets.token_hex(32)}",
        )

    async def _settle(self, reservation: Reservation) -> bool:
        """
        Move the hold's units from settling into the ledger's sold count.

        On failure the units stay counted as settling, so availability
        keeps treating them as sold.
        """
        key = reservation.key
        try:
            await self._ledger.increment_sold(
                key.event_id, key.ticket_type_id, reservation.quantity
            )
        except Exception as e:
            logger.warning(
                f"Supply ledger update failed for {reservation.id} "
                f"(+{reservation.quantity} sold on {key}): {e}"
            )
            return False

        async with self._manager.locks.hold(key):
            await self._tracker.end_settlement(key, reservation.quantity)
        return True

    def _record_outcome(self, sale: SaleRecord, duration: float) -> None:
        if sale.degraded:
            reasons = ", ".join(d.value for d in sale.degradations)
            logger.warning(f"Sale {sale.order_id} completed degraded: {reasons}")
        else:
            logger.info(
                f"Sale {sale.order_id} finalized with {len(sale.token_ids)} tokens"
            )
        if not self._metrics_collector:
            return
        for degradation in sale.degradations:
            self._metrics_collector.inc_counter(
                SALES_DEGRADED_TOTAL, labels={"reason": degradation.value}
            )
        self._metrics_collector.observe_histogram(
            FULFILLMENT_DURATION_SECONDS, duration
        )


__all__ = ["FulfillmentOrchestrator"]
