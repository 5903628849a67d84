"""Redis client for idempotency keys on settlement submissions.

Usage:
    from freelance_marketplace.infrastructure.redis_client import get_redis_or_none

    redis = get_redis_or_none()
    if redis is not None:
        await claim_idempotency(redis, idempotency_key_for("submit-xdr", signed_xdr))
"""

from __future__ import annotations

import hashlib

import redis.asyncio as aioredis

from freelance_marketplace.config import get_settings
from freelance_marketplace.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    await client.ping()
    _redis_client = client
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis_or_none() -> aioredis.Redis | None:
    """Return the client if startup managed to connect, else None."""
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


def idempotency_key_for(namespace: str, payload: str) -> str:
    """Derive a short, stable key from an arbitrary payload (e.g. a signed XDR)."""
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


async def claim_idempotency(redis: aioredis.Redis, key: str, ttl_seconds: int | None = None) -> bool:
    """Atomically reserve an idempotency key.

    Returns True if this caller reserved it, False if it was already taken.
    """
    ttl = ttl_seconds or get_settings().redis_idempotency_ttl_seconds
    return bool(await redis.set(f"idempotency:{key}", "1", ex=ttl, nx=True))


async def release_idempotency(redis: aioredis.Redis, key: str) -> None:
    """Drop a reservation so a failed operation can be retried."""
    await redis.delete(f"idempotency:{key}")
