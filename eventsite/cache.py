import json
from uuid import UUID

from loguru import logger
from redis.asyncio import Redis

from eventsite.settings import REDIS_URL, VIEW_CACHE_TTL

_redis: Redis | None = None


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def event_view_key(event_id: UUID) -> str:
    return f"view:event:{event_id}"


def bookings_view_key(user_id: UUID) -> str:
    return f"view:bookings:{user_id}"


def messages_view_key(user_id: UUID) -> str:
    return f"view:messages:{user_id}"


async def get_view_cache(key: str) -> dict | list | None:
    try:
        data = await get_redis().get(key)
        return json.loads(data) if data else None
    except Exception:
        logger.opt(exception=True).warning("Redis get failed for {}, skipping", key)
        return None


async def set_view_cache(key: str, payload: dict | list) -> None:
    try:
        await get_redis().setex(key, VIEW_CACHE_TTL, json.dumps(payload))
    except Exception:
        logger.opt(exception=True).warning("Redis set failed for {}, skipping", key)


async def invalidate_views(*keys: str) -> None:
    """Mark views stale after a write. Never raises."""
    if not keys:
        return
    try:
        await get_redis().delete(*keys)
    except Exception:
        logger.opt(exception=True).warning("Redis invalidate failed for {}", keys)


async def invalidate_booking_views(event_id: UUID, user_id: UUID) -> None:
    await invalidate_views(
        event_view_key(event_id),
        bookings_view_key(user_id),
        messages_view_key(user_id),
    )
