# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

This module provides standardized metric names for all observability
in the ticket reservation engine. All metric names use the
`ticket_engine_` prefix for Prometheus compatibility.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    To prevent label cardinality explosion, use only:
    - `event_id` - Event the metric relates to (bounded by the catalog)
    - `reason` - Failure or degradation reason (enum values)
    - `trigger` - What drove an expiry (timer, sweep, finalize)

    NEVER use:
    - `reservation_id` - Unique per hold (unbounded!)
    - `buyer_address` - Unique per buyer (unbounded!)
    - `token_id` - Unique per ticket (unbounded!)

Usage:
    >>> from ticket_reservation.observability.constants import HOLDS_CREATED_TOTAL
    >>> print(HOLDS_CREATED_TOTAL)
    'ticket_engine_holds_created_total'
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "ticket_engine"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Hold Lifecycle Metrics (reservation/manager.py)
# =============================================================================

HOLDS_CREATED_TOTAL = f"{METRIC_PREFIX}_holds_created_total"
"""Total holds created."""

HOLDS_REJECTED_TOTAL = f"{METRIC_PREFIX}_holds_rejected_total"
"""Total reserve calls rejected (e.g. insufficient inventory)."""

HOLDS_CANCELLED_TOTAL = f"{METRIC_PREFIX}_holds_cancelled_total"
"""Total holds cancelled by the buyer."""

HOLDS_EXPIRED_TOTAL = f"{METRIC_PREFIX}_holds_expired_total"
"""Total holds expired, labelled by what drove the expiry."""

HOLDS_COMPLETED_TOTAL = f"{METRIC_PREFIX}_holds_completed_total"
"""Total holds converted into sales."""

HOLDS_ACTIVE = f"{METRIC_PREFIX}_holds_active"
"""Holds currently in the reserved state."""


# =============================================================================
# Availability Metrics (availability/cache.py, availability/tracker.py)
# =============================================================================

AVAILABILITY_CACHE_HITS_TOTAL = f"{METRIC_PREFIX}_availability_cache_hits_total"
"""Total availability snapshot cache hits."""

AVAILABILITY_CACHE_MISSES_TOTAL = f"{METRIC_PREFIX}_availability_cache_misses_total"
"""Total availability snapshot cache misses."""

AVAILABILITY_CACHE_EVICTIONS_TOTAL = (
    f"{METRIC_PREFIX}_availability_cache_evictions_total"
)
"""Total snapshots evicted by the LRU bound."""

AVAILABILITY_INVALIDATIONS_TOTAL = f"{METRIC_PREFIX}_availability_invalidations_total"
"""Total snapshot invalidations after state changes."""

AVAILABILITY_STALE_FALLBACKS_TOTAL = (
    f"{METRIC_PREFIX}_availability_stale_fallbacks_total"
)
"""Total reads served from a stale snapshot because the ledger failed."""

AVAILABILITY_VERSION_CONFLICTS_TOTAL = (
    f"{METRIC_PREFIX}_availability_version_conflicts_total"
)
"""Total recomputed snapshots discarded because the key changed meanwhile."""


# =============================================================================
# Expiration Metrics (scheduler/expiration.py)
# =============================================================================

SWEEPS_TOTAL = f"{METRIC_PREFIX}_sweeps_total"
"""Total expiry sweeps run."""

TIMERS_ARMED = f"{METRIC_PREFIX}_timers_armed"
"""Expiry timers currently armed."""


# =============================================================================
# Fulfillment Metrics (fulfillment/orchestrator.py)
# =============================================================================

PAYMENT_REJECTIONS_TOTAL = f"{METRIC_PREFIX}_payment_rejections_total"
"""Total payment proofs rejected by the policy."""

SALES_DEGRADED_TOTAL = f"{METRIC_PREFIX}_sales_degraded_total"
"""Total post-commit degradations, labelled by reason."""

FULFILLMENT_DURATION_SECONDS = f"{METRIC_PREFIX}_fulfillment_duration_seconds"
"""Duration of complete() from payment acceptance to sale record (histogram)."""


# =============================================================================
# Check-in Metrics (checkin/ledger.py)
# =============================================================================

CHECK_INS_RECORDED_TOTAL = f"{METRIC_PREFIX}_check_ins_recorded_total"
"""Total first-time check-ins recorded."""

CHECK_INS_DUPLICATE_TOTAL = f"{METRIC_PREFIX}_check_ins_duplicate_total"
"""Total check-in attempts for tokens already checked in."""

CHECK_IN_VERIFICATION_FAILURES_TOTAL = (
    f"{METRIC_PREFIX}_check_in_verification_failures_total"
)
"""Total check-ins refused because the token could not be verified."""


# =============================================================================
# Histogram Buckets
# =============================================================================

LATENCY_BUCKETS: list[float] = [
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
]
"""Default latency buckets for duration histograms (in seconds)."""


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
    "METRIC_PREFIX",
    "PAYMENT_REJECTIONS_TOTAL",
    "SALES_DEGRADED_TOTAL",
    "SWEEPS_TOTAL",
    "TIMERS_ARMED",
]
