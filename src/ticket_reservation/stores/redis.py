# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
RedisStore for the Ticket Reservation Engine

This module provides a durable store backed by Redis. Records are stored as
pydantic JSON documents; sorted sets index them by creation time so scans
come back newest-first without a full keyspace walk.

Key layout (``ns`` is the store namespace):
- ``{ns}:reservation:{id}``            reservation document
- ``{ns}:reservations``                zset of all reservation ids
- ``{ns}:reservations:event:{event}``  zset of reservation ids per event
- ``{ns}:reservations:buyer:{buyer}``  zset of reservation ids per buyer (lowercased)
- ``{ns}:sale:{order_id}``             sale document (written with SET NX)
- ``{ns}:checkin:{token_id}``          check-in document (written with SET NX)
- ``{ns}:checkins``                    zset of all checked-in token ids
- ``{ns}:checkins:event:{event}``      zset of checked-in token ids per event

Because every reservation keeps its ``expires_at``, a restarted engine can
recover pending expirations from this store alone.
"""

import asyncio
import contextlib
import logging
import os
import time
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from ..exceptions import StoreConnectionError, StoreOperationError
from ..types.checkin import CheckInRecord
from ..types.reservation import Reservation, ReservationStatus
from ..types.sale import SaleRecord
from .base import BaseStore, HealthCheckResult, newest_first

logger = logging.getLogger(__name__)


class RedisStore(BaseStore):
    """
    Redis-backed store for reservations, sales and check-ins.

    Example:
        async with RedisStore(namespace="tickets") as store:
            engine = ReservationEngine(store=store, ledger=ledger, issuer=issuer)
    """

    def __init__(
        self,
        redis_url: str | None = None,
        redis_client: Any | None = None,
        namespace: str = "tickets",
        max_connections: int = 10,
    ) -> None:
        """
        Initialize the Redis store.

        Args:
            redis_url: Redis connection URL. If not provided, falls back to REDIS_URL
                environment variable, then to "redis://localhost:6379".
            redis_client: Optional pre-configured client (must use decode_responses=True)
            namespace: Namespace prefix for keys
            max_connections: Maximum connections in the pool

        Environment Variables:
            REDIS_URL: Default Redis connection URL when redis_url parameter is not provided.
        """
        super().__init__(namespace)

        # Use env var as fallback, then hardcoded default
        self.redis_url = (
            redis_url or os.environ.get("REDIS_URL") or "redis://localhost:6379"
        )
        self.max_connections = max_connections

        self._redis: Any | None = redis_client
        self._owned_redis = redis_client is None
        self._connected = False
        self._connection_lock = asyncio.Lock()

    # === Keys ===

    def _reservation_key(self, reservation_id: str) -> str:
        return f"{self.namespace}:reservation:{reservation_id}"

    def _reservation_index(self) -> str:
        return f"{self.namespace}:reservations"

    def _event_index(self, event_id: str) -> str:
        return f"{self.namespace}:reservations:event:{event_id}"

    def _buyer_index(self, buyer_address: str) -> str:
        return f"{self.namespace}:reservations:buyer:{buyer_address.lower()}"

    def _sale_key(self, order_id: str) -> str:
        return f"{self.namespace}:sale:{order_id}"

    def _check_in_key(self, token_id: str) -> str:
        return f"{self.namespace}:checkin:{token_id}"

    def _check_in_index(self, event_id: str | None = None) -> str:
        if event_id is None:
            return f"{self.namespace}:checkins"
        return f"{self.namespace}:checkins:event:{event_id}"

    # === Connection ===

    async def _ensure_connected(self) -> Any:
        """Return a connected client, creating the owned client on first use."""
        if self._redis is not None and self._connected:
            return self._redis

        async with self._connection_lock:
            if self._redis is None:
                logger.info(f"Connecting to Redis at {self.redis_url}")
                self._redis = Redis.from_url(
                    self.redis_url,
                    max_connections=self.max_connections,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30,
                )
            if not self._connected:
                try:
                    await self._redis.ping()
                except (ConnectionError, TimeoutError) as e:
                    logger.error(f"Redis connection failed: {e}")
                    raise StoreConnectionError("Store is unavailable") from e
                self._connected = True
        return self._redis

    @contextlib.asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[Any]:
        """Yield a client and translate redis and decoding errors."""
        client = await self._ensure_connected()
        try:
            yield client
        except (ConnectionError, TimeoutError) as e:
            self._connected = False
            logger.error(f"Redis connection error during {name}: {e}")
            raise StoreConnectionError("Store is unavailable") from e
        except RedisError as e:
            logger.error(f"Redis error during {name}: {e}")
            raise StoreOperationError(f"Store operation failed: {name}") from e
        except ValidationError as e:
            logger.error(f"Corrupt record during {name}: {e}")
            raise StoreOperationError(f"Store returned an invalid record: {name}") from e

    # === Reservations ===

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        async with self._operation("get_reservation") as client:
            raw = await client.get(self._reservation_key(reservation_id))
            if raw is None:
                return None
            return Reservation.model_validate_json(raw)

    async def put_reservation(self, reservation: Reservation) -> None:
        score = reservation.created_at.timestamp()
        async with self._operation("put_reservation") as client:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(
                    self._reservation_key(reservation.id),
                    reservation.model_dump_json(),
                )
                pipe.zadd(self._reservation_index(), {reservation.id: score})
                pipe.zadd(self._event_index(reservation.event_id), {reservation.id: score})
                pipe.zadd(
                    self._buyer_index(reservation.buyer_address),
                    {reservation.id: score},
                )
                await pipe.execute()

    async def scan_reservations(
        self,
        event_id: str | None = None,
        ticket_type_id: str | None = None,
        buyer_address: str | None = None,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]:
        # Narrowest available index first
        if buyer_address is not None:
            index = self._buyer_index(buyer_address)
        elif event_id is not None:
            index = self._event_index(event_id)
        else:
            index = self._reservation_index()

        buyer = buyer_address.lower() if buyer_address is not None else None
        async with self._operation("scan_reservations") as client:
            ids = await client.zrange(index, 0, -1)
            if not ids:
                return []
            docs = await client.mget([self._reservation_key(i) for i in ids])
            reservations = [
                Reservation.model_validate_json(doc) for doc in docs if doc is not None
            ]

        matches = [
            r
            for r in reservations
            if (event_id is None or r.event_id == event_id)
            and (ticket_type_id is None or r.ticket_type_id == ticket_type_id)
            and (buyer is None or r.buyer_address.lower() == buyer)
            and (status is None or r.status is status)
        ]
        return newest_first(matches)

    # === Sales ===

    async def get_sale(self, order_id: str) -> SaleRecord | None:
        async with self._operation("get_sale") as client:
            raw = await client.get(self._sale_key(order_id))
            if raw is None:
                return None
            return SaleRecord.model_validate_json(raw)

    async def put_sale(self, sale: SaleRecord) -> None:
        async with self._operation("put_sale") as client:
            created = await client.set(
                self._sale_key(sale.order_id), sale.model_dump_json(), nx=True
            )
        if not created:
            raise StoreOperationError(
                f"Sale record already exists for order {sale.order_id}"
            )

    # === Check-ins ===

    async def get_check_in(self, token_id: str) -> CheckInRecord | None:
        async with self._operation("get_check_in") as client:
            raw = await client.get(self._check_in_key(token_id))
            if raw is None:
                return None
            return CheckInRecord.model_validate_json(raw)

    async def put_check_in_if_absent(
        self, record: CheckInRecord
    ) -> tuple[CheckInRecord, bool]:
        key = self._check_in_key(record.token_id)
        async with self._operation("put_check_in_if_absent") as client:
            created = await client.set(key, record.model_dump_json(), nx=True)
            if not created:
                existing = await client.get(key)
                return CheckInRecord.model_validate_json(existing), False

            score = record.checked_in_at.timestamp()
            async with client.pipeline(transaction=True) as pipe:
                pipe.zadd(self._check_in_index(), {record.token_id: score})
                if record.event_id is not None:
                    pipe.zadd(
                        self._check_in_index(record.event_id),
                        {record.token_id: score},
                    )
                await pipe.execute()
            return record, True

    async def scan_check_ins(self, event_id: str | None = None) -> list[CheckInRecord]:
        async with self._operation("scan_check_ins") as client:
            token_ids = await client.zrange(self._check_in_index(event_id), 0, -1)
            if not token_ids:
                return []
            docs = await client.mget([self._check_in_key(t) for t in token_ids])
            records = [
                CheckInRecord.model_validate_json(doc) for doc in docs if doc is not None
            ]
        return sorted(
            records, key=lambda c: (c.checked_in_at, c.token_id), reverse=True
        )

    # === Health and Lifecycle ===

    async def health_check(self) -> HealthCheckResult:
        """Perform health check on the store."""
        try:
            client = await self._ensure_connected()

            test_key = f"{self.namespace}:health_check_{int(time.time())}"
            await client.set(test_key, "test", ex=60)
            result = await client.get(test_key)
            await client.delete(test_key)

            return HealthCheckResult(
                healthy=result == "test",
                store_type="redis",
                namespace=self.namespace,
                metadata={
                    "redis_url": self.redis_url,
                    "connected": self._connected,
                    "reservations_count": await client.zcard(
                        self._reservation_index()
                    ),
                    "check_ins_count": await client.zcard(self._check_in_index()),
                },
            )
        except Exception as e:
            return HealthCheckResult(
                healthy=False,
                store_type="redis",
                namespace=self.namespace,
                error=str(e),
            )

    async def clear(self) -> None:
        """Delete every key in this store's namespace.

        Uses SCAN instead of KEYS to avoid blocking Redis during large keyspace scans.
        """
        async with self._operation("clear") as client:
            cursor = 0
            while True:
                cursor, keys = await client.scan(
                    cursor, match=f"{self.namespace}:*", count=100
                )
                if keys:
                    await client.delete(*keys)
                if cursor == 0:
                    break

    async def close(self) -> None:
        """Close the owned client. Injected clients are left open."""
        if self._redis is not None and self._owned_redis:
            try:
                await asyncio.wait_for(self._redis.aclose(), timeout=2.5)
            except asyncio.TimeoutError:
                logger.warning("Redis connection close timed out")
            except Exception as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                self._redis = None
        self._connected = False

    async def __aenter__(self) -> "RedisStore":
        """Async context manager entry."""
        await self._ensure_connected()
        return self

    async def __aexit__(self, exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


__all__ = ["RedisStore"]
