"""Redis cache utilities for the Glimpse matching service."""

import json
from typing import Any, Dict, Optional, Type, TypeVar, Union

import redis
import sentry_sdk
from pydantic import BaseModel

from glimpse.config import settings
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

LIKE_STATS_CACHE_KEY = "like_stats:{user_id}"
LIKE_STATS_CACHE_TTL = 300


class RedisClient:
    """
    Process-wide Redis connection.

    Caching is optional: without ``REDIS_URL``, or when the connection cannot
    be set up, the client is marked failed and every cache call is a no-op.
    """

    _instance: Optional[redis.Redis] = None
    _failed: bool = False

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """Return the shared client, connecting on first use. None when caching is off."""
        if cls._failed:
            return None

        if cls._instance is None:
            if not settings.REDIS_URL:
                logger.info("No Redis configuration found, caching will be disabled")
                cls._failed = True
                return None
            try:
                pool = redis.ConnectionPool.from_url(
                    settings.REDIS_URL,
                    max_connections=10,
                    decode_responses=True,
                )
                cls._instance = redis.Redis(connection_pool=pool)
                logger.info("Redis client initialized")
            except Exception as e:
                logger.warning("Failed to initialize Redis client, caching will be disabled", error=str(e))
                cls._failed = True
                return None
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the current client so the next call reconnects."""
        cls._instance = None
        cls._failed = False


def set_cache(key: str, value: Union[str, Dict[str, Any], BaseModel], expiration: int = 300) -> None:
    """
    Store ``value`` under ``key``.

    Models are stored as their JSON dump and dicts through ``json.dumps``.
    Every entry expires; a non-positive ``expiration`` falls back to 300 seconds.
    """
    with sentry_sdk.start_span(op="cache.set", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return

        if isinstance(value, BaseModel):
            cache_value = value.model_dump_json()
        elif isinstance(value, dict):
            cache_value = json.dumps(value)
        else:
            cache_value = str(value)

        if expiration <= 0:
            logger.warning("Cache set without expiration, forcing default 5m", key=key)
            expiration = 300

        try:
            client.set(key, cache_value, ex=expiration)
            span.set_data("status", "success")
        except redis.RedisError as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            span.set_status("internal_error")


def get_cache(key: str) -> Optional[str]:
    """Return the raw cached string, or None on a miss or when Redis is unavailable."""
    with sentry_sdk.start_span(op="cache.get", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return None

        try:
            value = client.get(key)
        except redis.RedisError as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            span.set_status("internal_error")
            return None

        span.set_data("status", "hit" if value is not None else "miss")
        return value  # type: ignore[return-value]


def get_cache_model(key: str, model_class: Type[T]) -> Optional[T]:
    """
    Get a pydantic model from the Redis cache.

    Args:
        key (str): Cache key.
        model_class (Type[T]): Model to validate the cached JSON into.

    Returns:
        Optional[T]: The cached model, or None on a miss or a corrupt entry.
    """
    value = get_cache(key)
    if not value:
        return None

    try:
        return model_class.model_validate_json(value)
    except ValueError as e:
        logger.error("Failed to parse cached model", key=key, model=model_class.__name__, error=str(e))
        delete_cache(key)
        return None


def delete_cache(key: str) -> None:
    """Drop ``key`` from the cache. Missing keys are ignored."""
    with sentry_sdk.start_span(op="cache.delete", name=key) as span:
        client = RedisClient.get_client()
        if client is None:
            span.set_data("status", "disabled")
            return

        try:
            client.delete(key)
            span.set_data("status", "success")
        except redis.RedisError as e:
            logger.warning("Cache delete failed", key=key, error=str(e))
            span.set_status("internal_error")


def invalidate_like_stats(*user_ids: str) -> None:
    """Drop the cached like stats of every given user."""
    for user_id in user_ids:
        delete_cache(LIKE_STATS_CACHE_KEY.format(user_id=user_id))
