# backend/modules/reviews/services/quota_service.py

"""
Daily review creation quota.

A quota bucket is keyed by (user, calendar day in the configured timezone).
Buckets are never deleted explicitly: a new day simply maps to a new key.
Two counter stores are available:

- Redis: one key per bucket, incremented under WATCH/MULTI so that the
  check and the increment are a single atomic step and a denied request
  writes nothing.
- Database: one row per bucket, incremented with a conditional UPDATE in a
  savepoint of the caller's transaction. A rolled back review also returns
  its quota, and a failed counter statement rolls back only to the savepoint
  so a fail-open create can still commit.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo
import logging

import redis
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.redis_config import get_redis_client
from modules.reviews.exceptions import CounterUnavailableError
from modules.reviews.models.review_models import ReviewQuotaCounter
from modules.reviews.schemas.review_schemas import QuotaDecision, QuotaStatus

logger = logging.getLogger(__name__)

# Keys outlive their day slightly so late readers never see a reset mid-request
BUCKET_TTL_GRACE_SECONDS = 3600


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RedisQuotaBackend:
    """Quota buckets stored as Redis integer keys"""

    KEY_PREFIX = "review_quota"
    participates_in_transaction = False

    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    def _key(self, user_id: str, bucket: date) -> str:
        return f"{self.KEY_PREFIX}:{user_id}:{bucket.isoformat()}"

    def get(self, user_id: str, bucket: date) -> int:
        value = self.redis_client.get(self._key(user_id, bucket))
        return int(value or 0)

    def consume(self, user_id: str, bucket: date, limit: int, ttl_seconds: int) -> Optional[int]:
        """Increment the bucket unless it is full. Returns the new count, or None when denied."""
        key = self._key(user_id, bucket)

        def _consume(pipe) -> Optional[int]:
            current = int(pipe.get(key) or 0)
            if current >= limit:
                return None
            pipe.multi()
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            return current + 1

        return self.redis_client.transaction(_consume, key, value_from_callable=True)

    def release(self, user_id: str, bucket: date) -> None:
        key = self._key(user_id, bucket)

        def _release(pipe) -> None:
            current = int(pipe.get(key) or 0)
            if current <= 0:
                return
            pipe.multi()
            pipe.decr(key)

        self.redis_client.transaction(_release, key)


class DatabaseQuotaBackend:
    """Quota buckets stored as rows, incremented inside the caller's transaction"""

    participates_in_transaction = True

    def __init__(self, db: Session):
        self.db = db

    def _bucket_query(self, user_id: str, bucket: date):
        return self.db.query(ReviewQuotaCounter).filter(
            ReviewQuotaCounter.user_id == user_id,
            ReviewQuotaCounter.bucket_date == bucket,
        )

    def get(self, user_id: str, bucket: date) -> int:
        consumed = self._bucket_query(user_id, bucket).with_entities(
            ReviewQuotaCounter.consumed
        ).scalar()
        return consumed or 0

    def consume(self, user_id: str, bucket: date, limit: int, ttl_seconds: int) -> Optional[int]:
        try:
            with self.db.begin_nested():
                return self._increment(user_id, bucket, limit)
        except IntegrityError:
            # A concurrent request created today's row first
            logger.debug(f"Quota bucket for {user_id} created concurrently, retrying increment")
            with self.db.begin_nested():
                return self._increment(user_id, bucket, limit)

    def release(self, user_id: str, bucket: date) -> None:
        with self.db.begin_nested():
            self._bucket_query(user_id, bucket).filter(
                ReviewQuotaCounter.consumed > 0
            ).update(
                {ReviewQuotaCounter.consumed: ReviewQuotaCounter.consumed - 1},
                synchronize_session=False,
            )

    def _increment(self, user_id: str, bucket: date, limit: int) -> Optional[int]:
        updated = self._bucket_query(user_id, bucket).filter(
            ReviewQuotaCounter.consumed < limit
        ).update(
            {ReviewQuotaCounter.consumed: ReviewQuotaCounter.consumed + 1},
            synchronize_session=False,
        )
        if updated:
            return self.get(user_id, bucket)

        if self._bucket_query(user_id, bucket).first() is not None:
            return None  # Bucket exists and is full

        self.db.add(ReviewQuotaCounter(user_id=user_id, bucket_date=bucket, consumed=1))
        self.db.flush()
        return 1


class QuotaTracker:
    """Per-user, per-day review creation budget"""

    def __init__(
        self,
        backend,
        timezone_name: Optional[str] = None,
        fail_open: Optional[bool] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        settings = get_settings()
        self.backend = backend
        self.tz = ZoneInfo(timezone_name or settings.review_quota_timezone)
        self.fail_open = settings.review_quota_fail_open if fail_open is None else fail_open
        self.clock = clock

    @property
    def refunds_by_rollback(self) -> bool:
        """True when a transaction rollback already returns consumed quota"""
        return self.backend.participates_in_transaction

    def current_bucket(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def resets_at(self) -> datetime:
        """Start of the next bucket day, in UTC"""
        local_now = self.clock().astimezone(self.tz)
        next_midnight = datetime.combine(local_now.date() + timedelta(days=1), time.min, tzinfo=self.tz)
        return next_midnight.astimezone(timezone.utc)

    def seconds_until_reset(self) -> int:
        return int((self.resets_at() - self.clock()).total_seconds())

    def check_and_consume(self, user_id: str, daily_limit: int) -> QuotaDecision:
        """Consume one unit of today's budget if any is left"""
        if daily_limit <= 0:
            return QuotaDecision(allowed=False, remaining=0)

        bucket = self.current_bucket()
        ttl_seconds = self.seconds_until_reset() + BUCKET_TTL_GRACE_SECONDS
        try:
            consumed = self.backend.consume(user_id, bucket, daily_limit, ttl_seconds)
        except (redis.RedisError, SQLAlchemyError) as e:
            return self._counter_failure(user_id, daily_limit, e)

        if consumed is None:
            logger.warning(f"Review quota exhausted for user {user_id} on {bucket}")
            return QuotaDecision(allowed=False, remaining=0)

        return QuotaDecision(allowed=True, remaining=max(daily_limit - consumed, 0))

    def remaining(self, user_id: str, daily_limit: int) -> int:
        """Units left today, without consuming any"""
        return self.status(user_id, daily_limit).remaining

    def status(self, user_id: str, daily_limit: int) -> QuotaStatus:
        try:
            used = self.backend.get(user_id, self.current_bucket())
        except (redis.RedisError, SQLAlchemyError) as e:
            if not self.fail_open:
                logger.error(f"Review quota lookup failed for user {user_id}: {e}", exc_info=True)
                raise CounterUnavailableError() from e
            logger.warning(f"Review quota lookup failed for user {user_id}, reporting full budget: {e}")
            used = 0

        return QuotaStatus(
            daily_limit=daily_limit,
            used=used,
            remaining=max(daily_limit - used, 0),
            resets_at=self.resets_at(),
        )

    def refund(self, user_id: str) -> None:
        """Give back one unit of today's budget"""
        try:
            self.backend.release(user_id, self.current_bucket())
            logger.info(f"Refunded one review quota unit to user {user_id}")
        except (redis.RedisError, SQLAlchemyError) as e:
            logger.error(f"Failed to refund review quota for user {user_id}: {e}", exc_info=True)

    def _counter_failure(self, user_id: str, daily_limit: int, error: Exception) -> QuotaDecision:
        if self.fail_open:
            logger.warning(f"Review quota store unavailable, allowing user {user_id} uncounted: {error}")
            return QuotaDecision(allowed=True, remaining=daily_limit, counted=False)

        logger.error(f"Review quota store unavailable for user {user_id}: {error}", exc_info=True)
        raise CounterUnavailableError() from error


def create_quota_tracker(db: Session) -> QuotaTracker:
    """Build a tracker on the counter store selected by REVIEW_QUOTA_BACKEND"""
    settings = get_settings()
    if settings.review_quota_backend == "redis":
        backend = RedisQuotaBackend(get_redis_client())
    else:
        backend = DatabaseQuotaBackend(db)
    return QuotaTracker(backend)
