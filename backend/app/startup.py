"""
Application startup validation.

Checks that the review service is configured sanely and can reach its
backing stores before it starts serving requests.
"""

import logging
from typing import List, Tuple

import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from core.config import get_settings
from core.database import engine
from core.redis_config import get_redis_client

logger = logging.getLogger(__name__)


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.settings = get_settings()
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_database_connection(self) -> bool:
        """Check database connectivity"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except SQLAlchemyError as e:
            self.errors.append(f"Database connection failed: {e}")
            return False

    def check_quota_store(self) -> bool:
        """Check the Redis quota store when it is the configured backend"""
        if self.settings.review_quota_backend != "redis":
            logger.info("Review quota counters kept in the database")
            return True

        if not self.settings.redis_enabled:
            message = "REVIEW_QUOTA_BACKEND is redis but REDIS_URL is not set"
            if self.settings.is_production:
                self.errors.append(message)
                return False
            self.warnings.append(f"{message}; using redis://localhost:6379/0")

        try:
            get_redis_client().ping()
            logger.info("Redis connection successful")
            return True
        except redis.RedisError as e:
            message = f"Redis connection failed: {e}"
            if self.settings.is_production and not self.settings.review_quota_fail_open:
                self.errors.append(message)
                return False
            self.warnings.append(f"{message} - review creation will fail until it recovers")
            return True

    def check_environment_config(self) -> bool:
        if self.settings.review_quota_fail_open:
            self.warnings.append("REVIEW_QUOTA_FAIL_OPEN is enabled - quota is not enforced while the counter store is down")
        if self.settings.debug and self.settings.is_production:
            self.warnings.append("DEBUG is enabled in production")
        return True

    def run_all_checks(self) -> Tuple[bool, List[str]]:
        """
        Run all startup checks.

        Returns:
            Tuple of (success, warnings)
        """
        logger.info("Running startup validation checks...")

        self.check_environment_config()
        self.check_database_connection()
        self.check_quota_store()

        for warning in self.warnings:
            logger.warning(f"Startup warning: {warning}")

        if self.errors:
            for error in self.errors:
                logger.error(f"Startup error: {error}")
            return False, self.warnings

        logger.info("All startup checks passed")
        return True, self.warnings


def run_startup_checks() -> Tuple[bool, List[str]]:
    """
    Run startup validation checks.

    Raises:
        RuntimeError: If any check fails in production
    """
    validator = StartupValidator()
    success, warnings = validator.run_all_checks()

    if not success and validator.settings.is_production:
        raise RuntimeError("Startup validation failed. Check logs for details.")

    return success, warnings
