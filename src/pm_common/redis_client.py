"""Redis client for the ledger event stream.

NOT used for balance or position caching: every ledger read goes to PostgreSQL
inside the operation's own transaction. Socket timeouts are kept short because
publishing happens after commit, on the request path.
"""

import redis.asyncio as aioredis

from config.settings import settings

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Shared client, created on first use."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            health_check_interval=30,
        )
    return _client


async def ping_redis() -> bool:
    redis = await get_redis()
    return bool(await redis.ping())


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
