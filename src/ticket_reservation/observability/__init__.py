# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability and metrics for the Ticket Reservation Engine.

Classes:
    UnifiedMetricsCollector: Unified metrics collector supporting dict and Prometheus.

Protocols:
    MetricsCollectorProtocol: Protocol for metrics collection backends.

Functions:
    get_metrics_collector: Get the global metrics collector singleton.
    reset_metrics_collector: Reset the global metrics collector singleton.

Constants:
    All metric name constants from the constants module.
"""

from .collector import (
    METRIC_DEFINITIONS,
    MetricDefinition,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
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
    METRIC_PREFIX,
    PAYMENT_REJECTIONS_TOTAL,
    SALES_DEGRADED_TOTAL,
    SWEEPS_TOTAL,
    TIMERS_ARMED,
)
from .protocols import MetricsCollectorProtocol

__all__ = [
    "AVAILABILITY_CACHE_EVICTIONS_TOTAL",
    "AVAILABILITY_CACHE_HITS_TOTAL",
    "AVAILABILITY_CACHE_MISSES_TOTAL",
    "AVAILABILITY_INVALIDATIONS_TOTAL",
    "AVAILABILITY_STALE_FALLBACKS_TOTAL",
    "AVAILABILITY_VERSION_CONFLICTS_TOTAL",
    "CHECK_INS_DUPLICATE_TOTAL",
    "CHECK_INS_RECORDED_TOTAL",
    "CHECK_IN_VERIFICATION_FAILURES_TOTAL",
    "FULFILLMENT_DURATION_SECONDS",
    "HOLDS_ACTIVE",
    "HOLDS_CANCELLED_TOTAL",
    "HOLDS_COMPLETED_TOTAL",
    "HOLDS_CREATED_TOTAL",
    "HOLDS_EXPIRED_TOTAL",
    "HOLDS_REJECTED_TOTAL",
    "LATENCY_BUCKETS",
    "METRIC_DEFINITIONS",
    "METRIC_PREFIX",
    "PAYMENT_REJECTIONS_TOTAL",
    "SALES_DEGRADED_TOTAL",
    "SWEEPS_TOTAL",
    "TIMERS_ARMED",
    "MetricDefinition",
    "MetricsCollectorProtocol",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
