# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Store implementations for reservation, sale and check-in records.

Available stores:
- BaseStore: Abstract base class defining the store interface
- MemoryStore: In-memory store for single-process deployments
- RedisStore: Redis-based durable store (requires redis extra)

Supporting types:
- HealthCheckResult: Structured result from store health checks

Note: RedisStore is lazily imported to avoid requiring the redis package
when only using MemoryStore.
"""

from typing import TYPE_CHECKING, cast

from ticket_reservation.stores.base import BaseStore, HealthCheckResult
from ticket_reservation.stores.memory import MemoryStore

# Lazy import for optional redis store
if TYPE_CHECKING:
    from ticket_reservation.stores.redis import RedisStore

__all__ = [
    "BaseStore",
    "HealthCheckResult",
    "MemoryStore",
    "RedisStore",
]


def __getattr__(name: str) -> type:
    """Lazy import for the optional redis store."""
    if name == "RedisStore":
        try:
            from ticket_reservation.stores import redis as redis_module

            return cast(type, getattr(redis_module, name))
        except ImportError as e:  # pragma: no cover
            raise ImportError(  # pragma: no cover
                f"'{name}' requires the 'redis' extra. "
                "Install with: pip install ticket-reservation-engine[redis]"
            ) from e
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
