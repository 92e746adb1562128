# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Hold expiration: per-hold timers and the durable sweep."""

from .expiration import ExpirationScheduler, TimerState

__all__ = ["ExpirationScheduler", "TimerState"]
