"""
Health checks for the database and the quota counter store.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import time

import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.redis_config import get_redis_client
from ..schemas.health_schemas import ComponentStatus, HealthCheckResponse, HealthStatus

logger = logging.getLogger(__name__)

# Responses slower than this are reported as degraded
SLOW_RESPONSE_MS = 500


class HealthService:
    """Checks the backing services a review request depends on"""

    def __init__(self, db: Session, redis_client: Optional[redis.Redis] = None):
        self.db = db
        self.settings = get_settings()
        self._redis_client = redis_client

    @property
    def redis_client(self) -> redis.Redis:
        if self._redis_client is None:
            self._redis_client = get_redis_client()
        return self._redis_client

    def check_health(self) -> HealthCheckResponse:
        components = [self.check_database_health(), self.check_redis_health()]

        failed = sum(1 for c in components if c.status == HealthStatus.UNHEALTHY)
        degraded = sum(1 for c in components if c.status == HealthStatus.DEGRADED)

        if failed > 0:
            overall_status = HealthStatus.UNHEALTHY
        elif degraded > 0:
            overall_status = HealthStatus.DEGRADED
        else:
            overall_status = HealthStatus.HEALTHY

        return HealthCheckResponse(
            status=overall_status,
            timestamp=datetime.now(timezone.utc),
            version=self.settings.app_version,
            components=components,
            checks_passed=len(components) - failed,
            checks_failed=failed,
        )

    def check_database_health(self) -> ComponentStatus:
        """Check database connectivity"""
        start_time = time.time()
        try:
            self.db.execute(text("SELECT 1")).fetchone()
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return self._component(
                "database", HealthStatus.UNHEALTHY, start_time, message="Cannot connect to database"
            )

        response_time_ms = (time.time() - start_time) * 1000
        status = HealthStatus.DEGRADED if response_time_ms > SLOW_RESPONSE_MS else HealthStatus.HEALTHY
        return self._component(
            "database", status, start_time,
            details={"dialect": self.db.get_bind().dialect.name},
        )

    def check_redis_health(self) -> ComponentStatus:
        """Check the quota counter store when it lives in Redis"""
        start_time = time.time()
        if self.settings.review_quota_backend != "redis":
            return self._component(
                "redis", HealthStatus.HEALTHY, start_time,
                message="Not used; quota counters are kept in the database",
            )

        try:
            self.redis_client.ping()
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            # Fail-open deployments keep accepting reviews without Redis
            status = HealthStatus.DEGRADED if self.settings.review_quota_fail_open else HealthStatus.UNHEALTHY
            return self._component("redis", status, start_time, message="Cannot connect to Redis")

        response_time_ms = (time.time() - start_time) * 1000
        status = HealthStatus.DEGRADED if response_time_ms > SLOW_RESPONSE_MS else HealthStatus.HEALTHY
        return self._component("redis", status, start_time)

    def _component(
        self,
        name: str,
        status: HealthStatus,
        start_time: float,
        details: Optional[dict] = None,
        message: Optional[str] = None,
    ) -> ComponentStatus:
        return ComponentStatus(
            name=name,
            status=status,
            response_time_ms=(time.time() - start_time) * 1000,
            details=details,
            last_checked=datetime.now(timezone.utc),
            message=message,
        )
