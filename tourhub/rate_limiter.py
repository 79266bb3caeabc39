"""
Hybrid in-memory + Redis rate limiting
Counts live in process memory and are synced to Redis periodically when one is configured
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import Request

from .config import Settings
from .errors import RateLimitError
from .security_utils import get_client_ip

logger = logging.getLogger(__name__)

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds


def connect_redis(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """Connect to Redis, or return None to run memory-only (fail-open)."""
    if not redis_url:
        logger.info("ℹ️ REDIS_URL not set - rate limiting runs in memory only")
        return None

    if "@" in redis_url:
        url_parts = redis_url.split("@")
        protocol = url_parts[0].split(":")[0]
        masked_url = f"{protocol}:****@{url_parts[1]}"
    else:
        masked_url = "****"
    logger.info(f"📡 Using Redis URL connection: {masked_url}")

    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=20,
        )
        client.ping()
        logger.info("Redis connected successfully via URL")
        return client
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis connection failed - rate limiting will use memory only: {e}")
        return None


class RateLimiter:
    """Fixed-window counters keyed by prefix and client."""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client
        self.memory_cache: dict[str, dict] = {}
        self.cache_lock = Lock()
        self.last_cleanup_time = 0

    def cleanup_expired_cache(self) -> None:
        current_time = int(time.time())
        if current_time - self.last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
            return

        with self.cache_lock:
            expired_keys = [k for k, v in self.memory_cache.items() if current_time >= v.get("reset_time", 0)]
            for k in expired_keys:
                del self.memory_cache[k]
        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")
        self.last_cleanup_time = current_time

    def _load_entry(self, key: str, window_seconds: int, current_time: int) -> dict:
        if self.redis_client is not None:
            try:
                redis_count = self.redis_client.get(key)
                redis_ttl = self.redis_client.ttl(key)
                if redis_count and redis_ttl > 0:
                    return {
                        "count": int(redis_count),
                        "reset_time": current_time + redis_ttl,
                        "last_redis_sync": current_time,
                    }
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
        return {"count": 0, "reset_time": current_time + window_seconds, "last_redis_sync": current_time}

    def check(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
        """
        Count one request against key.

        Returns:
            Tuple of (is_allowed, current_count, ttl_seconds)
        """
        current_time = int(time.time())
        self.cleanup_expired_cache()

        with self.cache_lock:
            if key not in self.memory_cache:
                self.memory_cache[key] = self._load_entry(key, window_seconds, current_time)
            cache_entry = self.memory_cache[key]

            if current_time >= cache_entry["reset_time"]:
                cache_entry["count"] = 0
                cache_entry["reset_time"] = current_time + window_seconds
                cache_entry["last_redis_sync"] = 0

            is_allowed = cache_entry["count"] < limit
            if is_allowed:
                cache_entry["count"] += 1

            if self.redis_client is not None:
                time_since_sync = current_time - cache_entry.get("last_redis_sync", 0)
                if time_since_sync >= MEMORY_CACHE_SYNC_INTERVAL:
                    try:
                        self.redis_client.set(key, cache_entry["count"], ex=window_seconds)
                        cache_entry["last_redis_sync"] = current_time
                        logger.debug(f"📡 Synced {key} to Redis: {cache_entry['count']}/{limit}")
                    except redis.RedisError as e:
                        logger.warning(f"⚠️ Failed to sync to Redis: {e}")

            ttl = cache_entry["reset_time"] - current_time
            return is_allowed, cache_entry["count"], max(0, ttl)

    def reset(self) -> None:
        with self.cache_lock:
            self.memory_cache.clear()


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
):
    settings: Settings = request.app.state.settings
    if not settings.rate_limit_enabled:
        return

    limiter: RateLimiter = request.app.state.rate_limiter
    client_ip = get_client_ip(request)
    key = f"{key_prefix}:{client_ip}"

    is_allowed, current_count, ttl = limiter.check(key, limit, window_seconds)
    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise RateLimitError(
            retry_after=ttl,
            details={"limit": limit, "windowSeconds": window_seconds},
        )

    request.state.rate_limit_remaining = limit - current_count
    request.state.rate_limit_limit = limit
    request.state.rate_limit_reset = int(time.time()) + ttl


def create_rate_limiter(limit_setting: str, window_setting: str, key_prefix: str = "rate_limit"):
    """
    Create a rate limiter dependency whose limits are read from Settings

    Example usage:
        auth_rate_limit = create_rate_limiter(
            "auth_rate_limit_max_requests", "auth_rate_limit_window_seconds", key_prefix="auth"
        )
    """

    async def rate_limiter(request: Request):
        settings: Settings = request.app.state.settings
        return await rate_limit_dependency(
            request,
            getattr(settings, limit_setting),
            getattr(settings, window_setting),
            key_prefix,
        )

    return rate_limiter


standard_rate_limit = create_rate_limiter(
    "rate_limit_max_requests", "rate_limit_window_seconds", key_prefix="api"
)
auth_rate_limit = create_rate_limiter(
    "auth_rate_limit_max_requests", "auth_rate_limit_window_seconds", key_prefix="auth"
)
