# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metrics collector backing every ``metrics_collector`` argument in the engine.

UnifiedMetricsCollector keeps its own dict series, which are always
available through ``get_metrics()`` and the ``get_counter``/``get_gauge``
accessors. It also mirrors each update into prometheus_client metrics,
created lazily from METRIC_DEFINITIONS. Any metric name missing from the
catalogue is still accepted and registered on first use.

Usage:
    >>> from ticket_reservation.observability.collector import get_metrics_collector
    >>> collector = get_metrics_collector()
    >>> collector.inc_counter(HOLDS_CREATED_TOTAL, labels={"event_id": "evt-1"})
    >>> collector.get_counter(HOLDS_CREATED_TOTAL, {"event_id": "evt-1"})
    1

Thread Safety:
    Series updates happen under one RLock; Prometheus mirroring happens
    outside it (prometheus_client is itself thread-safe).
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, ClassVar

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from .constants import (
    AVAILABILITY_CACHE_EVICTIONS_TOTAL,
    AVAILABILITY_CACHE_HITS_TOTAL,
    AVAILABILITY_CACHE_MISSES_TOTAL,
    AVAILABILITY_INVALIDATIONS_TOTAL,
    AVAILABILITY_STALE_FALLBACKS_TOTAL,
    AVAILABILITY_VERSION_CONFLICTS_TOTAL,
    CHECK_IN_VERIFICATION_FAILURES_TOTAL,
    CHECK_INS_DUPLICATE_TOTAL,
    CHECK_INS_RECORDED_TOTAL,
    FULFILLMENT_DURATION_SECONDS,
    HOLDS_ACTIVE,
    HOLDS_CANCELLED_TOTAL,
    HOLDS_COMPLETED_TOTAL,
    HOLDS_CREATED_TOTAL,
    HOLDS_EXPIRED_TOTAL,
    HOLDS_REJECTED_TOTAL,
    LATENCY_BUCKETS,
    PAYMENT_REJECTIONS_TOTAL,
    SALES_DEGRADED_TOTAL,
    SWEEPS_TOTAL,
    TIMERS_ARMED,
)

logger = logging.getLogger(__name__)

# Observations kept per histogram series; trimmed to half when exceeded
HISTOGRAM_WINDOW = 10000

_PROMETHEUS_TYPES: dict[str, Any] = {
    "counter": Counter,
    "gauge": Gauge,
    "histogram": Histogram,
}


@dataclass
class MetricDefinition:
    """Name, type, help text and label schema of one exported metric."""

    name: str
    metric_type: str  # 'counter', 'gauge', 'histogram'
    description: str
    label_names: tuple[str, ...] = ()
    buckets: list[float] | None = None


def _counter(name: str, description: str, *labels: str) -> MetricDefinition:
    return MetricDefinition(name, "counter", description, labels)


def _gauge(name: str, description: str, *labels: str) -> MetricDefinition:
    return MetricDefinition(name, "gauge", description, labels)


METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    d.name: d
    for d in (
        # Hold lifecycle
        _counter(HOLDS_CREATED_TOTAL, "Holds created", "event_id"),
        _counter(
            HOLDS_REJECTED_TOTAL, "Reserve calls rejected", "event_id", "reason"
        ),
        _counter(HOLDS_CANCELLED_TOTAL, "Holds cancelled", "event_id"),
        _counter(HOLDS_EXPIRED_TOTAL, "Holds expired", "event_id", "trigger"),
        _counter(HOLDS_COMPLETED_TOTAL, "Holds converted into sales", "event_id"),
        _gauge(HOLDS_ACTIVE, "Holds currently reserved", "event_id"),
        # Availability
        _counter(AVAILABILITY_CACHE_HITS_TOTAL, "Availability cache hits"),
        _counter(AVAILABILITY_CACHE_MISSES_TOTAL, "Availability cache misses"),
        _counter(AVAILABILITY_CACHE_EVICTIONS_TOTAL, "Availability LRU evictions"),
        _counter(AVAILABILITY_INVALIDATIONS_TOTAL, "Availability invalidations"),
        _counter(
            AVAILABILITY_STALE_FALLBACKS_TOTAL,
            "Stale snapshots served because the supply ledger failed",
        ),
        _counter(
            AVAILABILITY_VERSION_CONFLICTS_TOTAL,
            "Recomputed snapshots discarded as outdated",
        ),
        # Expiration
        _counter(SWEEPS_TOTAL, "Expiry sweeps run"),
        _gauge(TIMERS_ARMED, "Expiry timers currently armed"),
        # Fulfillment
        _counter(PAYMENT_REJECTIONS_TOTAL, "Payment proofs rejected"),
        _counter(SALES_DEGRADED_TOTAL, "Post-commit degradations", "reason"),
        MetricDefinition(
            FULFILLMENT_DURATION_SECONDS,
            "histogram",
            "Time from payment acceptance to sale record",
            buckets=LATENCY_BUCKETS,
        ),
        # Check-in
        _counter(CHECK_INS_RECORDED_TOTAL, "Check-ins recorded"),
        _counter(CHECK_INS_DUPLICATE_TOTAL, "Repeated check-in attempts"),
        _counter(
            CHECK_IN_VERIFICATION_FAILURES_TOTAL, "Check-ins refused by verification"
        ),
    )
}


def _summarize(observations: list[float]) -> dict[str, Any]:
    total = sum(observations)
    return {
        "count": len(observations),
        "sum": total,
        "avg": total / len(observations),
        "min": min(observations),
        "max": max(observations),
    }


class UnifiedMetricsCollector:
    """
    Dict-backed metrics with optional Prometheus mirroring.

    Each metric accepts at most MAX_LABEL_COMBINATIONS distinct label sets;
    further combinations are dropped with a warning. The engine labels only
    by event, reason and trigger, so the limit guards against misuse.

    Example:
        >>> collector = UnifiedMetricsCollector(registry=CollectorRegistry())
        >>> collector.observe_histogram(FULFILLMENT_DURATION_SECONDS, 0.12)
        >>> collector.get_metrics()["histograms"]
    """

    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """
        Args:
            enable_prometheus: Mirror updates into Prometheus metrics.
            registry: Registry to create them in (default: the global REGISTRY).
                Tests pass a fresh CollectorRegistry per collector.
        """
        self._enable_prometheus = enable_prometheus
        self._registry = registry if registry is not None else REGISTRY
        self._lock = threading.RLock()

        self._counters: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._gauges: dict[str, dict[str, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._histograms: dict[str, dict[str, list[float]]] = defaultdict(
            lambda: defaultdict(list)
        )
        self._seen_labels: dict[str, set[str]] = defaultdict(set)

        self._prometheus: dict[str, Any] = {}
        self._server_running = False

    # === Series bookkeeping ===

    @staticmethod
    def _series_key(labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    def _admit(self, name: str, labels: dict[str, str] | None) -> str | None:
        """Series key for ``labels``, or None once the metric is saturated."""
        key = self._series_key(labels)
        seen = self._seen_labels[name]
        if key in seen:
            return key
        if len(seen) >= self.MAX_LABEL_COMBINATIONS:
            logger.warning(
                f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached for "
                f"{name}, dropping labels {key}"
            )
            return None
        seen.add(key)
        return key

    # === Prometheus mirroring ===

    def _prometheus_metric(
        self, name: str, metric_type: str, labels: dict[str, str] | None
    ) -> Any | None:
        with self._lock:
            if name in self._prometheus:
                return self._prometheus[name]

            defn = METRIC_DEFINITIONS.get(name)
            if defn is None or defn.metric_type != metric_type:
                defn = MetricDefinition(
                    name, metric_type, name, tuple(sorted(labels or {}))
                )
            kwargs: dict[str, Any] = {"registry": self._registry}
            if metric_type == "histogram":
                kwargs["buckets"] = defn.buckets or LATENCY_BUCKETS

            try:
                metric = _PROMETHEUS_TYPES[metric_type](
                    name, defn.description, list(defn.label_names), **kwargs
                )
            except ValueError as e:
                # Already registered in a shared registry by another collector
                logger.warning(f"Cannot register Prometheus {metric_type} {name}: {e}")
                metric = None
            self._prometheus[name] = metric
            return metric

    def _mirror(
        self,
        name: str,
        metric_type: str,
        labels: dict[str, str] | None,
        method: str,
        value: float,
    ) -> None:
        if not self._enable_prometheus:
            return
        metric = self._prometheus_metric(name, metric_type, labels)
        if metric is None:
            return
        try:
            target = metric.labels(**labels) if labels else metric
            getattr(target, method)(value)
        except Exception as e:
            logger.debug(f"Prometheus {method} failed for {name}: {e}")

    # === Recording ===

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Raises:
            ValueError: If value is negative.
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")
        with self._lock:
            key = self._admit(name, labels)
            if key is None:
                return
            self._counters[name][key] += value
        self._mirror(name, "counter", labels, "inc", value)

    def set_gauge(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        self._move_gauge(name, labels, "set", value)

    def inc_gauge(
        self, name: str, value: float = 1.0, labels: dict[str, str] | None = None
    ) -> None:
        self._move_gauge(name, labels, "inc", value)

    def dec_gauge(
        self, name: str, value: float = 1.0, labels: dict[str, str] | None = None
    ) -> None:
        self._move_gauge(name, labels, "dec", value)

    def _move_gauge(
        self, name: str, labels: dict[str, str] | None, op: str, value: float
    ) -> None:
        with self._lock:
            key = self._admit(name, labels)
            if key is None:
                return
            series = self._gauges[name]
            if op == "set":
                series[key] = value
            elif op == "inc":
                series[key] += value
            else:
                series[key] -= value
        self._mirror(name, "gauge", labels, op, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            key = self._admit(name, labels)
            if key is None:
                return
            window = self._histograms[name][key]
            window.append(value)
            if len(window) > HISTOGRAM_WINDOW:
                del window[: len(window) - HISTOGRAM_WINDOW // 2]
        self._mirror(name, "histogram", labels, "observe", value)

    # === Reading ===

    def get_metrics(self) -> dict[str, Any]:
        """
        JSON-ready snapshot::

            {
                "counters": {name: {series_key: int}},
                "gauges": {name: {series_key: float}},
                "histograms": {name: {series_key: {count, sum, avg, min, max}}},
            }

        ``series_key`` is ``"k1=v1,k2=v2"`` with sorted keys, or ``""``
        for an unlabelled series.
        """
        with self._lock:
            return {
                "counters": {n: dict(s) for n, s in self._counters.items()},
                "gauges": {n: dict(s) for n, s in self._gauges.items()},
                "histograms": {
                    n: {k: _summarize(obs) for k, obs in s.items() if obs}
                    for n, s in self._histograms.items()
                },
            }

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Current value of a counter series (0 if never incremented)."""
        with self._lock:
            return self._counters.get(name, {}).get(self._series_key(labels), 0)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of a gauge series (0.0 if never set)."""
        with self._lock:
            return self._gauges.get(name, {}).get(self._series_key(labels), 0.0)

    def reset(self) -> None:
        """Forget every dict series. Prometheus metrics are left as they are."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._seen_labels.clear()

    # === Exporting ===

    def start_http_server(self, host: str = "127.0.0.1", port: int = 9090) -> bool:
        """
        Serve this collector's registry for Prometheus scraping.

        Binds to localhost by default; pass ``host="0.0.0.0"`` inside a
        container. Returns False if the port could not be bound.
        """
        if self._server_running:
            return True
        try:
            start_http_server(port, addr=host, registry=self._registry)
        except OSError as e:
            logger.error(f"Failed to start Prometheus server on {host}:{port}: {e}")
            return False
        self._server_running = True
        logger.info(f"Prometheus metrics served on {host}:{port}")
        return True

    @property
    def prometheus_enabled(self) -> bool:
        return self._enable_prometheus

    @property
    def server_running(self) -> bool:
        return self._server_running


# =============================================================================
# Process-wide collector
# =============================================================================

_global_collector: UnifiedMetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector(enable_prometheus: bool = True) -> UnifiedMetricsCollector:
    """
    Return the process-wide collector, creating it on first use.

    ``enable_prometheus`` only matters for the call that creates it. Engines
    built without an explicit collector share this one.
    """
    global _global_collector
    with _collector_lock:
        if _global_collector is None:
            _global_collector = UnifiedMetricsCollector(
                enable_prometheus=enable_prometheus
            )
        return _global_collector


def reset_metrics_collector() -> None:
    """Drop the process-wide collector (tests)."""
    global _global_collector
    with _collector_lock:
        if _global_collector is not None:
            _global_collector.reset()
        _global_collector = None


__all__ = [
    "METRIC_DEFINITIONS",
    "MetricDefinition",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
