# SPDX-License-Identifier: Apache-2.0

"""
Health Check Service

Reports the health of the entity store, the token blocklist, the event
broker and basic system metrics.
"""

import os
import time
from typing import Any, Dict, List, Optional

import psutil
from opentelemetry import trace

from ..models.base import utc_now
from .amqp import EventPublisher
from .redis import RedisService
from .store import EntityStore

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "rescue-api"
SERVICE_VERSION = "1.0.0"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(
        self,
        store: EntityStore,
        redis_service: Optional[RedisService] = None,
        publisher: Optional[EventPublisher] = None
    ):
        self.store = store
        self.redis_service = redis_service
        self.publisher = publisher
        self.service_version = SERVICE_VERSION

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """
        Get health status including all dependencies and metrics.

        The store is the only required dependency: the service is unhealthy
        without it and degraded when an optional dependency fails.
        """
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            store_health = self._check_store_health()
            redis_health = self._check_redis_health()
            amqp_health = self._check_amqp_health()

            overall_status = self._determine_overall_status(
                store_health["status"],
                [redis_health["status"], amqp_health["status"]]
            )
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.store_status": store_health["status"],
                "health.redis_status": redis_health["status"],
                "health.amqp_status": amqp_health["status"]
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utc_now().isoformat(),
                "responseTimeMs": response_time_ms,
                "dependencies": {
                    "store": store_health,
                    "redis": redis_health,
                    "amqp": amqp_health
                },
                "systemMetrics": self._get_system_metrics()
            }

    def _check_store_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.store_check") as span:
            start_time = time.time()
            try:
                health = dict(self.store.health_check())
            except Exception as e:
                span.record_exception(e)
                health = {"status": "unhealthy", "error": str(e)}
            health["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            span.set_attribute("store.status", health["status"])
            return health

    def _check_redis_health(self) -> Dict[str, Any]:
        if self.redis_service is None:
            return {"status": "disabled"}
        with tracer.start_as_current_span("health.redis_check") as span:
            health = self.redis_service.health_check()
            span.set_attribute("redis.status", health["status"])
            return health

    def _check_amqp_health(self) -> Dict[str, Any]:
        if self.publisher is None:
            return {"status": "disabled"}
        with tracer.start_as_current_span("health.amqp_check") as span:
            start_time = time.time()
            healthy = self.publisher.health_check()
            status = "healthy" if healthy else "unhealthy"
            span.set_attribute("amqp.status", status)
            return {
                "status": status,
                "response_time_ms": round((time.time() - start_time) * 1000, 2),
                "exchange": self.publisher.config.exchange
            }

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Get basic system performance metrics."""
        try:
            memory = psutil.virtual_memory()
            process = psutil.Process(os.getpid())
            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory": {
                    "used_mb": round(memory.used / 1024 / 1024, 2),
                    "total_mb": round(memory.total / 1024 / 1024, 2),
                    "percent": memory.percent
                },
                "process": {
                    "pid": process.pid,
                    "rss_mb": round(process.memory_info().rss / 1024 / 1024, 2),
                    "uptime_seconds": round(time.time() - process.create_time(), 2)
                },
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except (psutil.Error, OSError) as e:
            return {
                "error": f"Failed to collect system metrics: {str(e)}"
            }

    def _determine_overall_status(self, store_status: str, optional_statuses: List[str]) -> str:
        if store_status != "healthy":
            return "unhealthy"
        if any(status not in ("healthy", "disabled") for status in optional_statuses):
            return "degraded"
        return "healthy"
