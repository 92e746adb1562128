# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Engine Configuration for the Ticket Reservation Engine

This module provides the configuration class for the reservation engine,
covering hold lifetime, expiry sweeping, availability caching and listing
limits.
"""

from dataclasses import dataclass
from datetime import timedelta

from .exceptions import ConfigurationError

HOLD_DURATION_SECONDS = 15 * 60
"""Default lifetime of a hold (15 minutes)."""

MAX_QUANTITY = 5
"""Default maximum number of units in a single hold."""


@dataclass
class EngineConfig:
    """
    Configuration for the reservation engine.

    Defaults reproduce the production behavior: 15-minute holds of at most
    five units, with a 30-second expiry sweep as the durable backstop for
    per-hold timers.
    """

    # === Holds ===

    hold_duration_seconds: float = HOLD_DURATION_SECONDS
    """Lifetime of a hold in seconds (expires_at = created_at + this)."""

    max_quantity: int = MAX_QUANTITY
    """Maximum number of units a single hold may claim."""

    # === Expiration ===

    sweep_interval: float = 30.0
    """Interval between background expiry sweeps in seconds."""

    recover_on_start: bool = True
    """Sweep overdue holds and re-arm timers for live holds on start()."""

    arm_timers: bool = True
    """Arm a one-shot timer per hold. The sweep still runs when disabled."""

    timer_history_size: int = 10000
    """Number of fired/cancelled timer outcomes remembered for inspection."""

    # === Availability Cache ===

    availability_cache_ttl: float = 5.0
    """Upper bound in seconds on how long a cached snapshot is served."""

    availability_cache_max_size: int = 10000
    """Maximum number of (event, ticket type) snapshots before LRU eviction."""

    # === Fulfillment ===

    placeholder_token_prefix: str = "PLACEHOLDER-NFT-"
    """Prefix for locally generated token ids when issuance degrades."""

    # === Listings ===

    default_page_size: int = 10
    """Default limit for buyer listings."""

    max_page_size: int = 100
    """Upper bound accepted for listing limits and page sizes."""

    # === Metrics ===

    metrics_enabled: bool = True
    """Record metrics through the metrics collector."""

    # === Namespace isolation ===

    namespace: str = "tickets"
    """Key prefix used by stores."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.hold_duration_seconds <= 0:
            raise ConfigurationError("hold_duration_seconds must be positive")
        if self.max_quantity < 1:
            raise ConfigurationError("max_quantity must be at least 1")
        if self.sweep_interval <= 0:
            raise ConfigurationError("sweep_interval must be positive")
        if self.timer_history_size < 1:
            raise ConfigurationError("timer_history_size must be at least 1")
        if self.availability_cache_ttl <= 0:
            raise ConfigurationError("availability_cache_ttl must be positive")
        if self.availability_cache_max_size < 1:
            raise ConfigurationError("availability_cache_max_size must be at least 1")
        if self.default_page_size < 1 or self.max_page_size < 1:
            raise ConfigurationError("page sizes must be at least 1")
        if self.default_page_size > self.max_page_size:
            raise ConfigurationError("default_page_size must not exceed max_page_size")
        if not self.namespace:
            raise ConfigurationError("namespace must not be empty")

    @property
    def hold_duration(self) -> timedelta:
        """Hold lifetime as a timedelta."""
        return timedelta(seconds=self.hold_duration_seconds)


__all__ = [
    "HOLD_DURATION_SECONDS",
    "MAX_QUANTITY",
    "EngineConfig",
]
