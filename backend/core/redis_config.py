# backend/core/redis_config.py

"""
Redis configuration and connection management.
Provides a singleton Redis client for the review quota counters.
"""

from typing import Optional
import logging

import redis
from redis import Redis

from core.config import settings

logger = logging.getLogger(__name__)


class RedisConfig:
    """Redis connection configuration"""

    def __init__(self):
        self.url = settings.redis_url or "redis://localhost:6379/0"
        self.max_connections = settings.redis_max_connections
        self.decode_responses = True
        self.socket_timeout = settings.redis_socket_timeout
        self.socket_connect_timeout = settings.redis_socket_timeout
        self.health_check_interval = 30


_redis_client: Optional[Redis] = None
_connection_pool: Optional[redis.ConnectionPool] = None


def get_redis_client() -> Redis:
    """
    Get or create the Redis client singleton.

    The client connects lazily, so an unreachable server surfaces as a
    ``redis.RedisError`` on first use rather than here.
    """
    global _redis_client, _connection_pool

    if _redis_client is not None:
        return _redis_client

    config = RedisConfig()
    _connection_pool = redis.ConnectionPool.from_url(
        config.url,
        max_connections=config.max_connections,
        decode_responses=config.decode_responses,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
        health_check_interval=config.health_check_interval,
    )
    _redis_client = Redis(connection_pool=_connection_pool)
    logger.info("Redis client configured")
    return _redis_client


def close_redis_connection():
    """Close Redis connection pool"""
    global _redis_client, _connection_pool

    if _connection_pool:
        _connection_pool.disconnect()
        _connection_pool = None
    _redis_client = None
    logger.info("Redis connection closed")
