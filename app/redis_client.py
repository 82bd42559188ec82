import redis.asyncio as redis

from .config import settings

# None when no redis is configured; callers treat that as "no cache"
redis_client = (
    redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        decode_responses=True,   # bytes to strings
    )
    if settings.REDIS_HOST
    else None
)
