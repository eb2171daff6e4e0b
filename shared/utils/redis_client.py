"""
Redis client utilities for the Daily Digest services.
One lazily-connected client per service, shared by event publishing and health checks.
"""

from typing import Dict, Mapping, Optional, Union

import redis

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

FieldValue = Union[str, int, float, bytes]


class RedisClient:
    """Lazily connects on first use; pass ``client`` to supply an existing connection."""

    def __init__(self, service_name: str, client: Optional[redis.Redis] = None):
        self.service_name = service_name
        self._client = client
        self._logger = get_logger(f"shared.redis.{service_name}")

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            settings = get_settings()
            timeout = settings.service.redis_timeout
            connection = redis.Redis.from_url(
                settings.redis.redis_url,
                decode_responses=True,
                socket_timeout=timeout,
                socket_connect_timeout=timeout,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            try:
                connection.ping()
            except redis.exceptions.RedisError as e:
                self._logger.error(f"❌ Failed to connect to Redis: {e}")
                raise
            self._logger.info("✅ Connected to Redis successfully")
            self._client = connection
        return self._client

    def ping(self) -> bool:
        """True when Redis answers; errors are logged, not raised."""
        try:
            return bool(self.client.ping())
        except redis.exceptions.RedisError as e:
            self._logger.error(f"Redis ping failed: {e}")
            return False

    def xadd(self, stream: str, fields: Mapping[str, FieldValue], maxlen: Optional[int] = 1000) -> str:
        """Append to ``stream``, trimming it approximately to ``maxlen`` entries."""
        try:
            return self.client.xadd(stream, dict(fields), maxlen=maxlen, approximate=True)
        except redis.exceptions.RedisError as e:
            self._logger.error(f"Failed to add to stream {stream}: {e}")
            raise

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            self._logger.info("Redis connection closed")


_redis_clients: Dict[str, RedisClient] = {}


def get_redis_client(service_name: str) -> RedisClient:
    """Get or create the Redis client for a service."""
    if service_name not in _redis_clients:
        _redis_clients[service_name] = RedisClient(service_name)
    return _redis_clients[service_name]


def close_all_redis_clients():
    for client in _redis_clients.values():
        client.close()
    _redis_clients.clear()
