import logging

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from hometaste.config import settings
from hometaste.errors import TransientError
from hometaste.metrics import store_transient_errors_total

logger = logging.getLogger(__name__)

_redis: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def get_session_user(token: str) -> str | None:
    """
    Resolve a bearer session token to the user id the auth service stored under
    `session:<token>`. Returns None for unknown or expired tokens.
    """
    r = await get_redis()
    try:
        return await r.get(f"{settings.session_key_prefix}{token}")
    except (RedisConnectionError, RedisTimeoutError) as e:
        store_transient_errors_total.labels(store="redis").inc()
        logger.warning("Session store unavailable: %s", e)
        raise TransientError(f"session store unavailable: {e}") from e
