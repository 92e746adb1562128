# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol for the metrics sink used by engine components.

Components only ever record: they increment counters, move gauges and
observe durations. Snapshots, resets and exporting belong to the concrete
collector, so any object with these five methods can be injected.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsCollectorProtocol(Protocol):
    """
    What the reservation engine records into.

    Labels must stay low-cardinality (``event_id``, ``reason``, ``trigger``);
    see ``observability.constants``.

    Example:
        >>> class PrintingCollector:
        ...     def inc_counter(self, name, value=1, labels=None):
        ...         print(name, labels)
        ...     def set_gauge(self, name, value, labels=None): pass
        ...     def inc_gauge(self, name, value=1.0, labels=None): pass
        ...     def dec_gauge(self, name, value=1.0, labels=None): pass
        ...     def observe_histogram(self, name, value, labels=None): pass
        >>> isinstance(PrintingCollector(), MetricsCollectorProtocol)
        True
    """

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Add ``value`` (>= 0) to a counter such as holds created."""
        ...

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def inc_gauge(
        self,
        name: str,
        value: float = 1.0,
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def dec_gauge(
        self,
        name: str,
        value: float = 1.0,
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Record one observation, e.g. a fulfillment duration in seconds."""
        ...


__all__ = ["MetricsCollectorProtocol"]
