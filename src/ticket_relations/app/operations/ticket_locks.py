from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import structlog

from ticket_relations.adapters.locks.redis_lock import RedisTicketLockStore
from ticket_relations.config.settings import Settings
from ticket_relations.domain.error_messages import ErrorMessages
from ticket_relations.domain.errors import ConcurrentModification

log = structlog.get_logger(__name__)


class TicketLockRegistry:
    """
    Per-ticket mutation locks for split and merge.

    Two layers: an in-process set (prevents intra-process races) and, when
    `locks.backend = redis`, a Redis SET NX EX claim shared by every worker.
    Claims are all-or-nothing over sorted ticket IDs; nothing waits.
    """

    def __init__(self, settings: Settings) -> None:
        self._in_flight: set[str] = set()
        self._guard = asyncio.Lock()
        self._redis: RedisTicketLockStore | None = None
        if settings.locks.backend == "redis" and settings.locks.redis_url is not None:
            self._redis = RedisTicketLockStore(
                settings.locks.redis_url.get_secret_value(),
                settings.locks.ttl_seconds,
            )

    def is_held(self, ticket_id: str) -> bool:
        return ticket_id in self._in_flight

    async def try_acquire(self, ticket_ids: Iterable[str]) -> str | None:
        """Claim every ticket ID or none. Returns the first busy ID, or None on success."""
        keys = sorted(set(ticket_ids))

        # 1. Local process lock
        async with self._guard:
            for key in keys:
                if key in self._in_flight:
                    return key
            self._in_flight.update(keys)

        # 2. Distributed lock (if enabled)
        if self._redis is None:
            return None
        claimed: list[str] = []
        try:
            for key in keys:
                if not await self._redis.try_claim(key):
                    await self._release_redis(claimed)
                    async with self._guard:
                        self._in_flight.difference_update(keys)
                    return key
                claimed.append(key)
        except Exception:
            # If Redis fails, we fall back to the local lock only.
            log.warning("ticket_locks.redis_lock_failed_fallback_to_local", ticket_ids=keys)
        return None

    async def release(self, ticket_ids: Iterable[str]) -> None:
        keys = sorted(set(ticket_ids))
        if self._redis is not None:
            await self._release_redis(keys)
        async with self._guard:
            self._in_flight.difference_update(keys)

    async def _release_redis(self, keys: list[str]) -> None:
        if self._redis is None:
            return
        for key in keys:
            try:
                await self._redis.release(key)
            except Exception:
                log.warning("ticket_locks.redis_unlock_failed", ticket_id=key)

    @asynccontextmanager
    async def hold(self, ticket_ids: Iterable[str]) -> AsyncIterator[None]:
        keys = sorted(set(ticket_ids))
        busy = await self.try_acquire(keys)
        if busy is not None:
            log.info("ticket_locks.busy", ticket_id=busy)
            raise ConcurrentModification(
                ErrorMessages.TICKET_BUSY.format(ticket_id=busy),
                ticket_id=busy,
                rule="ticket_lock",
            )
        try:
            yield
        finally:
            await asyncio.shield(self.release(keys))

    async def aclose(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
