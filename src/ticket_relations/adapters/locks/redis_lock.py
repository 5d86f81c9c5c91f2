"""Redis-backed per-ticket mutation lock shared by every worker process.
Requires optional dependency: pip install helpdesk-ticket-relations[redis]."""

from __future__ import annotations

import uuid

_REDIS_PREFIX = "ticket_relations:ticket_lock:"

# Delete only while the key still carries our token; an expired claim may belong to someone else.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisTicketLockStore:
    """Claims ticket IDs with SET NX EX so concurrent split/merge calls serialize per ticket."""

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int,
        prefix: str = _REDIS_PREFIX,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0 for Redis lock store")
        self._redis_url = redis_url
        self._ttl_seconds = ttl_seconds
        self._prefix = prefix
        self._redis: object | None = None
        self._tokens: dict[str, str] = {}

    def _client(self):  # noqa: ANN201
        if self._redis is not None:
            return self._redis
        try:
            from redis.asyncio import Redis  # type: ignore
        except ImportError as e:
            raise RuntimeError(
                "Redis lock backend requires the redis package. "
                "Install with: pip install helpdesk-ticket-relations[redis]"
            ) from e
        self._redis = Redis.from_url(
            self._redis_url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        return self._redis

    def _key(self, key: str) -> str:
        return self._prefix + key

    async def try_claim(self, key: str) -> bool:
        """Atomically claim key (SET NX EX). True if claimed, False if held elsewhere."""
        redis = self._client()
        token = uuid.uuid4().hex
        claimed = bool(await redis.set(self._key(key), token, ex=self._ttl_seconds, nx=True))
        if claimed:
            self._tokens[key] = token
        return claimed

    async def release(self, key: str) -> None:
        """Release key if this store still owns the claim. No-op for keys it never claimed."""
        token = self._tokens.pop(key, None)
        if token is None:
            return
        redis = self._client()
        await redis.eval(_RELEASE_SCRIPT, 1, self._key(key), token)

    async def aclose(self) -> None:
        """Close the Redis connection if it was opened."""
        if self._redis is not None:
            await self._redis.aclose()  # type: ignore
            self._redis = None
