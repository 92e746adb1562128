# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Derived availability: the snapshot cache and the tracker that fills it."""

from .cache import CacheMetrics, SnapshotCache
from .tracker import AvailabilityTracker

__all__ = ["AvailabilityTracker", "CacheMetrics", "SnapshotCache"]
