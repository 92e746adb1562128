# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Transport-agnostic request/response API.

TicketingAPI wraps a ReservationEngine and never raises: every call
returns an ApiResponse that is either a success carrying JSON-safe
``data`` or a failure carrying a stable error ``kind`` and a user-safe
``reason``. Informational outcomes (a repeated check-in, a degraded sale)
are successes with ``warnings``.

Example:
    >>> api = TicketingAPI(engine)
    >>> response = await api.create_hold("evt-1", "ga", 2, "0xabc")
    >>> if not response.ok:
    ...     print(response.error.kind, response.error.reason)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field

from .engine import ReservationEngine
from .exceptions import ErrorKind, InvalidRequestError, ReservationEngineError
from .types.checkin import CheckInOutcome, CheckInRecord, VerifyingInfo
from .types.reservation import Page, ReservationStatus, ReservationView
from .types.sale import SaleRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

INTERNAL_ERROR_REASON = "An internal error occurred"


class ApiError(BaseModel):
    """Failure details: a stable kind plus a human-readable reason."""

    kind: str
    reason: str


class ApiResponse(BaseModel):
    """Discriminated success/failure envelope returned by every API call."""

    ok: bool
    data: Any = None
    error: ApiError | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def success(
        cls, data: Any = None, warnings: list[str] | None = None
    ) -> "ApiResponse":
        return cls(ok=True, data=data, warnings=warnings or [])

    @classmethod
    def failure(cls, kind: ErrorKind, reason: str) -> "ApiResponse":
        return cls(ok=False, error=ApiError(kind=kind.value, reason=reason))


def _parse_status(status: str | None) -> ReservationStatus | None:
    if status is None:
        return None
    try:
        return ReservationStatus(status)
    except ValueError:
        raise InvalidRequestError(f"Unknown status: {status}") from None


def _page_data(page: Page[ReservationView]) -> dict[str, Any]:
    data: dict[str, Any] = {
        "items": [view.to_dict() for view in page.items],
        "total": page.total,
        "offset": page.offset,
        "limit": page.limit,
    }
    if page.page is not None:
        data["page"] = page.page
        data["page_size"] = page.page_size
        data["total_pages"] = page.total_pages
    return data


class TicketingAPI:
    """Envelope API over a ReservationEngine."""

    def __init__(self, engine: ReservationEngine) -> None:
        self.engine = engine

    async def _call(
        self,
        operation: str,
        call: Awaitable[T],
        render: Callable[[T], ApiResponse],
    ) -> ApiResponse:
        """Await ``call`` and render it; map every failure to an envelope."""
        try:
            return render(await call)
        except ReservationEngineError as e:
            logger.debug(f"{operation} failed: {e.kind.value}: {e.reason}")
            return ApiResponse.failure(e.kind, e.reason)
        except Exception as e:
            logger.exception(f"Unexpected error in {operation}: {e}")
            return ApiResponse.failure(ErrorKind.INTERNAL, INTERNAL_ERROR_REASON)

    # === Holds ===

    async def create_hold(
        self,
        event_id: str,
        ticket_type_id: str,
        quantity: int,
        buyer_address: str,
    ) -> ApiResponse:
        return await self._call(
            "create_hold",
            self.engine.reservations.reserve(
                event_id, ticket_type_id, quantity, buyer_address
            ),
            lambda reservation: ApiResponse.success(
                reservation.model_dump(mode="json")
            ),
        )

    async def finalize_hold(self, order_id: str, payment_proof: str) -> ApiResponse:
        def render(sale: SaleRecord) -> ApiResponse:
            data = sale.model_dump(mode="json")
            data["degraded"] = sale.degraded
            return ApiResponse.success(data, [d.value for d in sale.degradations])

        return await self._call(
            "finalize_hold",
            self.engine.fulfillment.complete(order_id, payment_proof),
            render,
        )

    async def cancel_hold(self, reservation_id: str) -> ApiResponse:
        return await self._call(
            "cancel_hold",
            self.engine.reservations.cancel(reservation_id),
            lambda reservation: ApiResponse.success(
                reservation.model_dump(mode="json")
            ),
        )

    async def get_hold(self, reservation_id: str) -> ApiResponse:
        return await self._call(
            "get_hold",
            self.engine.reservations.get(reservation_id),
            lambda view: ApiResponse.success(view.to_dict()),
        )

    async def list_holds_for_buyer(
        self,
        buyer_address: str,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> ApiResponse:
        async def run() -> Page[ReservationView]:
            return await self.engine.reservations.list_for_buyer(
                buyer_address, _parse_status(status), limit, offset
            )

        return await self._call(
            "list_holds_for_buyer",
            run(),
            lambda page: ApiResponse.success(_page_data(page)),
        )

    async def list_holds(
        self,
        event_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> ApiResponse:
        async def run() -> Page[ReservationView]:
            return await self.engine.reservations.list_all(
                event_id, _parse_status(status), page, page_size
            )

        return await self._call(
            "list_holds",
            run(),
            lambda result: ApiResponse.success(_page_data(result)),
        )

    # === Availability ===

    async def get_availability(
        self, event_id: str, ticket_type_id: str
    ) -> ApiResponse:
        return await self._call(
            "get_availability",
            self.engine.availability.get(event_id, ticket_type_id),
            lambda snapshot: ApiResponse.success(snapshot.to_dict()),
        )

    # === Admin ===

    async def sweep_expired(self) -> ApiResponse:
        return await self._call(
            "sweep_expired",
            self.engine.scheduler.sweep(),
            lambda count: ApiResponse.success({"expired": count}),
        )

    async def invalidate_availability_cache(self) -> ApiResponse:
        return await self._call(
            "invalidate_availability_cache",
            self.engine.availability.invalidate_all(),
            lambda count: ApiResponse.success({"invalidated": count}),
        )

    # === Check-ins ===

    async def record_check_in(
        self,
        token_id: str,
        verifying_agent: str,
        presented_owner: str | None = None,
        event_id: str | None = None,
    ) -> ApiResponse:
        info = VerifyingInfo(
            verifying_agent=verifying_agent,
            presented_owner=presented_owner,
            event_id=event_id,
        )

        def render(outcome: CheckInOutcome) -> ApiResponse:
            data = outcome.record.model_dump(mode="json")
            data["already_checked_in"] = outcome.already_checked_in
            warnings = (
                [ErrorKind.ALREADY_CHECKED_IN.value]
                if outcome.already_checked_in
                else []
            )
            return ApiResponse.success(data, warnings)

        return await self._call(
            "record_check_in",
            self.engine.check_ins.record_check_in(token_id, info),
            render,
        )

    async def get_check_in(self, token_id: str) -> ApiResponse:
        return await self._call(
            "get_check_in",
            self.engine.check_ins.get(token_id),
            lambda record: ApiResponse.success(record.model_dump(mode="json")),
        )

    async def list_check_ins(self, event_id: str) -> ApiResponse:
        def render(records: list[CheckInRecord]) -> ApiResponse:
            return ApiResponse.success(
                {
                    "items": [r.model_dump(mode="json") for r in records],
                    "total": len(records),
                }
            )

        return await self._call(
            "list_check_ins", self.engine.check_ins.list_for_event(event_id), render
        )


__all__ = ["ApiError", "ApiResponse", "TicketingAPI"]
