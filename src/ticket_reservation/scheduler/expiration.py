# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
ExpirationScheduler: timed release of holds plus a periodic sweep.

The sweep is the primary mechanism. It re-derives due holds from their
persisted ``expires_at`` and so survives process restarts. Per-hold
timers are an optimization that releases a hold close to its deadline
between sweeps. Both paths call the same idempotent release operation,
so a hold reached by both is expired exactly once.
"""

import asyncio
import contextlib
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum

from ..config import EngineConfig
from ..observability.constants import SWEEPS_TOTAL, TIMERS_ARMED
from ..observability.protocols import MetricsCollectorProtocol
from ..types.reservation import utc_now

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[str], Awaitable[bool]]
SweepCallback = Callable[[], Awaitable[int]]


class TimerState(Enum):
    """Per-hold timer state."""

    ARMED = "armed"
    FIRED = "fired"
    CANCELLED = "cancelled-before-fire"


class ExpirationScheduler:
    """
    Arms one-shot release timers and runs the background expiry sweep.

    Args:
        release: Idempotent coroutine that expires one hold if it is still
            ``reserved``; returns True only when it performed the transition.
        sweep: Coroutine that releases every overdue hold; returns a count.
        config: Engine configuration (sweep interval, history size).
        metrics_collector: Optional metrics sink.
        clock: Wall clock used to turn deadlines into delays.
    """

    def __init__(
        self,
        release: ReleaseCallback,
        sweep: SweepCallback,
        config: EngineConfig | None = None,
        metrics_collector: MetricsCollectorProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or EngineConfig()
        self._release = release
        self._sweep = sweep
        self._clock = clock
        self._metrics_collector = metrics_collector

        self._handles: dict[str, asyncio.TimerHandle] = {}
        # Finished outcomes only; armed state lives in _handles
        self._outcomes: OrderedDict[str, TimerState] = OrderedDict()
        self._inflight: set[asyncio.Task[None]] = set()

        # Sweep task state
        self._sweep_task: asyncio.Task[None] | None = None
        self._running = False

    # === Timers ===

    def arm(self, reservation_id: str, deadline: datetime) -> None:
        """
        Schedule a one-shot release of ``reservation_id`` at ``deadline``.

        Re-arming an already armed hold replaces its timer.
        """
        loop = asyncio.get_running_loop()
        self.disarm(reservation_id, record=False)
        delay = max(0.0, (deadline - self._clock()).total_seconds())
        self._handles[reservation_id] = loop.call_later(
            delay, self._fire, reservation_id
        )
        self._update_armed_gauge()
        logger.debug(f"Expiry timer armed for {reservation_id} in {delay:.1f}s")

    def disarm(self, reservation_id: str, record: bool = True) -> bool:
        """
        Cancel the pending timer for ``reservation_id``.

        Returns:
            True if a pending timer was cancelled.
        """
        handle = self._handles.pop(reservation_id, None)
        if handle is None:
            return False
        handle.cancel()
        if record:
            self._record_outcome(reservation_id, TimerState.CANCELLED)
        self._update_armed_gauge()
        return True

    def timer_state(self, reservation_id: str) -> TimerState | None:
        """State of the hold's timer, or None if never armed or forgotten."""
        if reservation_id in self._handles:
            return TimerState.ARMED
        return self._outcomes.get(reservation_id)

    @property
    def armed_count(self) -> int:
        return len(self._handles)

    def _fire(self, reservation_id: str) -> None:
        """Timer callback: hand the release to a task on the loop."""
        self._handles.pop(reservation_id, None)
        self._record_outcome(reservation_id, TimerState.FIRED)
        self._update_armed_gauge()
        task = asyncio.get_running_loop().create_task(
            self._run_release(reservation_id),
            name=f"expire_{reservation_id}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_release(self, reservation_id: str) -> None:
        try:
            await self._release(reservation_id)
        except Exception as e:
            # The sweep will retry this hold
            logger.error(
                f"Timed release of {reservation_id} failed: {e}", exc_info=True
            )

    def _record_outcome(self, reservation_id: str, state: TimerState) -> None:
        self._outcomes[reservation_id] = state
        self._outcomes.move_to_end(reservation_id)
        if len(self._outcomes) > self.config.timer_history_size:
            self._outcomes.popitem(last=False)

    def _update_armed_gauge(self) -> None:
        if self._metrics_collector:
            self._metrics_collector.set_gauge(TIMERS_ARMED, len(self._handles))

    # === Sweep ===

    async def sweep(self) -> int:
        """Run one expiry sweep now. Returns the number of holds expired."""
        count = await self._sweep()
        if self._metrics_collector:
            self._metrics_collector.inc_counter(SWEEPS_TOTAL)
        if count:
            logger.info(f"Expiry sweep released {count} holds")
        return count

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            return

        self._running = True
        self._sweep_task = asyncio.create_task(
            self._sweep_loop(), name=f"expiry_sweep_{id(self)}"
        )
        logger.info(
            f"Expiry sweep started (interval {self.config.sweep_interval}s)"
        )

    async def stop(self) -> None:
        """Stop the sweep task and cancel every armed timer."""
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None

        for reservation_id in list(self._handles):
            self.disarm(reservation_id, record=False)

        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("Expiry sweep stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _sweep_loop(self) -> None:
        """Background task that periodically expires overdue holds."""
        while self._running:
            try:
                await asyncio.sleep(self.config.sweep_interval)
                if self._running:
                    await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in expiry sweep loop: {e}", exc_info=True)


__all__ = ["ExpirationScheduler", "ReleaseCallback", "SweepCallback", "TimerState"]
