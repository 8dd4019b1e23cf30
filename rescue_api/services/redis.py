# SPDX-License-Identifier: Apache-2.0

"""
Redis service for the JWT token blocklist.

Uses the standard redis-py client. When Redis cannot be reached the service
degrades: blocklist writes are dropped and lookups report "not blocked".
"""

import os
import time
from typing import Optional, Dict, Any
import redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

BLOCKLIST_PREFIX = "blocklist:jwt:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """Redis-backed token blocklist."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[Any] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Redis connection URL (redis://host:port)
            client: Pre-built redis client, mainly for tests
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")

        if client is not None:
            self.client = client
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            self._test_connection()
            logger.info(f"Redis service initialized successfully at {self.redis_url}")
        except (redis.RedisError, RedisConnectionError) as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        try:
            if not self.client.ping():
                raise RedisConnectionError("Redis ping failed")
        except redis.RedisError as e:
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def add_to_blocklist(self, jti: str, exp: int) -> bool:
        """
        Add a JWT token to the blocklist until it expires.

        Args:
            jti: JWT ID (unique token identifier)
            exp: Token expiration timestamp

        Returns:
            True if the token is blocked or already expired
        """
        ttl = max(0, exp - int(time.time()))
        if ttl <= 0:
            return True

        if not self.client:
            logger.warning("Redis client not available, token not blocklisted")
            return False

        with tracer.start_as_current_span("redis.blocklist_add") as span:
            span.set_attributes({"redis.key": f"{BLOCKLIST_PREFIX}{jti}", "redis.ttl": ttl})
            try:
                result = self.client.setex(f"{BLOCKLIST_PREFIX}{jti}", ttl, "blocked")
                span.set_attribute("redis.result", "success")
                return bool(result)
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis blocklist write failed for {jti}: {str(e)}")
                return False

    def is_token_blocked(self, jti: str) -> bool:
        """
        Check if a JWT token is in the blocklist.

        Returns:
            True if token is blocked, False otherwise
        """
        if not self.client:
            return False

        try:
            return bool(self.client.exists(f"{BLOCKLIST_PREFIX}{jti}"))
        except redis.RedisError as e:
            logger.error(f"Redis blocklist check failed for {jti}: {str(e)}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """Check Redis connection health."""
        if not self.client:
            return {"status": "unavailable", "url": self.redis_url}

        start = time.time()
        try:
            self.client.ping()
            return {
                "status": "healthy",
                "response_time_ms": round((time.time() - start) * 1000, 2)
            }
        except redis.RedisError as e:
            return {"status": "unhealthy", "error": str(e)}


def create_redis_service() -> Optional[RedisService]:
    """
    Create the Redis service from REDIS_URL.

    Returns:
        RedisService instance, or None when REDIS_URL is not configured
    """
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        logger.info("REDIS_URL not set, token blocklist disabled")
        return None
    return RedisService(redis_url)
