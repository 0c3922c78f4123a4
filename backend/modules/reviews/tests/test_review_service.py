# backend/modules/reviews/tests/test_review_service.py

import pytest
from unittest.mock import Mock
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
import uuid

from modules.establishments.exceptions import EstablishmentNotFoundError
from modules.establishments.models.establishment_models import EstablishmentStatus
from modules.reviews.exceptions import (
    ContentTooShortError, DuplicateActiveReviewError, EstablishmentNotEligibleError,
    QuotaExceededError, ReviewForbiddenError, ReviewNotFoundError, StoreUnavailableError
)
from modules.reviews.models.review_models import Review
from modules.reviews.schemas.review_schemas import (
    PartnerResponseCreate, QuotaDecision, ReviewCreate, ReviewSort, ReviewUpdate
)
from modules.reviews.services.quota_service import DatabaseQuotaBackend, QuotaTracker
from modules.reviews.services.review_service import ReviewLifecycleService
from modules.reviews.tests.conftest import AUTHOR_ID, OTHER_AUTHOR_ID, PARTNER_ID

VALID_CONTENT = "Great food and service, highly recommend!"


def _create_data(establishment_id, rating=5, content=VALID_CONTENT) -> ReviewCreate:
    return ReviewCreate(establishment_id=establishment_id, rating=rating, content=content)


def _active_reviews(db_session, establishment_id):
    return db_session.query(Review).filter(
        Review.establishment_id == establishment_id,
        Review.is_active.is_(True),
    ).all()


def _assert_aggregate_matches(db_session, establishment):
    """Stored summary equals a fresh count and mean over active reviews"""
    db_session.expire_all()
    active = _active_reviews(db_session, establishment.id)
    expected_mean = round(sum(r.rating for r in active) / len(active), 2) if active else 0.0

    assert establishment.review_count == len(active)
    assert establishment.average_rating == expected_mean


class TestReviewLifecycle:
    """End to end behaviour of the lifecycle service"""

    def test_create_update_delete_scenario(self, review_service: ReviewLifecycleService, establishment, db_session):
        """Test the full lifecycle of one author's review"""
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        assert created.is_active is True
        assert created.is_edited is False
        assert created.rating == 5

        updated = review_service.update_review(created.id, AUTHOR_ID, ReviewUpdate(rating=4))

        assert updated.is_edited is True
        assert updated.rating == 4
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at

        review_service.delete_review(created.id, AUTHOR_ID)

        with pytest.raises(ReviewNotFoundError):
            review_service.get_review(created.id)

        recreated = review_service.create_review(AUTHOR_ID, _create_data(establishment.id, rating=3))

        assert recreated.id != created.id
        assert recreated.is_active is True
        _assert_aggregate_matches(db_session, establishment)

    def test_aggregates_follow_every_mutation(self, review_service, establishment, db_session):
        first = review_service.create_review(AUTHOR_ID, _create_data(establishment.id, rating=5))
        _assert_aggregate_matches(db_session, establishment)
        assert establishment.review_count == 1
        assert establishment.average_rating == 5.0

        review_service.create_review(OTHER_AUTHOR_ID, _create_data(establishment.id, rating=2))
        _assert_aggregate_matches(db_session, establishment)
        assert establishment.average_rating == 3.5

        review_service.update_review(first.id, AUTHOR_ID, ReviewUpdate(rating=3))
        _assert_aggregate_matches(db_session, establishment)
        assert establishment.average_rating == 2.5

        review_service.delete_review(first.id, AUTHOR_ID)
        _assert_aggregate_matches(db_session, establishment)
        assert establishment.review_count == 1
        assert establishment.average_rating == 2.0

    def test_deleting_last_review_resets_aggregate(self, review_service, establishment, db_session):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        review_service.delete_review(created.id, AUTHOR_ID)

        db_session.expire_all()
        assert establishment.review_count == 0
        assert establishment.average_rating == 0.0

    def test_content_only_update_skips_recompute(self, review_service, establishment, monkeypatch):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))
        recompute = Mock(wraps=review_service.aggregates.recompute)
        monkeypatch.setattr(review_service.aggregates, "recompute", recompute)

        updated = review_service.update_review(
            created.id, AUTHOR_ID, ReviewUpdate(content="Still great, but the queue was long.")
        )

        assert updated.is_edited is True
        recompute.assert_not_called()

    def test_update_loads_review_once(self, review_service, establishment, monkeypatch):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id, rating=5))
        get = Mock(wraps=review_service.store.get)
        monkeypatch.setattr(review_service.store, "get", get)

        updated = review_service.update_review(created.id, AUTHOR_ID, ReviewUpdate(rating=2))

        assert updated.rating == 2
        get.assert_called_once_with(created.id)

    def test_resubmitting_same_rating_skips_recompute(self, review_service, establishment, monkeypatch):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id, rating=4))
        recompute = Mock(wraps=review_service.aggregates.recompute)
        monkeypatch.setattr(review_service.aggregates, "recompute", recompute)

        review_service.update_review(created.id, AUTHOR_ID, ReviewUpdate(rating=4))

        recompute.assert_not_called()

    def test_deleted_review_absent_from_listing(self, review_service, establishment):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))
        review_service.create_review(OTHER_AUTHOR_ID, _create_data(establishment.id, rating=3))

        review_service.delete_review(created.id, AUTHOR_ID)
        listing = review_service.list_establishment_reviews(establishment.id)

        assert [r.id for r in listing.reviews if r.id == created.id] == []
        assert listing.pagination.total == 1

    def test_update_by_non_author_is_forbidden(self, review_service, establishment):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        with pytest.raises(ReviewForbiddenError):
            review_service.update_review(created.id, OTHER_AUTHOR_ID, ReviewUpdate(rating=1))

        assert review_service.get_review(created.id).rating == 5

    def test_delete_by_non_author_is_forbidden(self, review_service, establishment):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        with pytest.raises(ReviewForbiddenError):
            review_service.delete_review(created.id, OTHER_AUTHOR_ID)

        assert review_service.get_review(created.id).is_active is True

    def test_list_unknown_establishment(self, review_service):
        with pytest.raises(EstablishmentNotFoundError):
            review_service.list_establishment_reviews(uuid.uuid4())

    def test_list_user_reviews(self, review_service, make_establishment):
        first = make_establishment()
        second = make_establishment()
        review_service.create_review(AUTHOR_ID, _create_data(first.id))
        review_service.create_review(AUTHOR_ID, _create_data(second.id, rating=2))
        review_service.create_review(OTHER_AUTHOR_ID, _create_data(first.id))

        listing = review_service.list_user_reviews(AUTHOR_ID)

        assert listing.pagination.total == 2
        assert {r.establishment_id for r in listing.reviews} == {first.id, second.id}

    def test_list_sorted_highest(self, review_service, establishment):
        review_service.create_review("a", _create_data(establishment.id, rating=2))
        review_service.create_review("b", _create_data(establishment.id, rating=5))
        review_service.create_review("c", _create_data(establishment.id, rating=4))

        listing = review_service.list_establishment_reviews(establishment.id, sort=ReviewSort.HIGHEST)

        assert [r.rating for r in listing.reviews] == [5, 4, 2]


class TestReviewQuotaEnforcement:
    """Daily quota as applied by the lifecycle"""

    def test_tenth_create_succeeds_eleventh_is_rejected(self, review_service, make_establishment, quota_tracker):
        establishments = [make_establishment() for _ in range(11)]

        for establishment in establishments[:10]:
            review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        assert quota_tracker.remaining(AUTHOR_ID, 10) == 0

        with pytest.raises(QuotaExceededError) as exc_info:
            review_service.create_review(AUTHOR_ID, _create_data(establishments[10].id))

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == str(14 * 3600)
        assert quota_tracker.status(AUTHOR_ID, 10).used == 10

    def test_duplicate_does_not_consume_quota(self, review_service, establishment, quota_tracker):
        review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        with pytest.raises(DuplicateActiveReviewError):
            review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        assert quota_tracker.remaining(AUTHOR_ID, 10) == 9

    def test_ineligible_establishment_does_not_consume_quota(self, review_service, make_establishment, quota_tracker):
        draft = make_establishment(status=EstablishmentStatus.DRAFT)

        with pytest.raises(EstablishmentNotEligibleError):
            review_service.create_review(AUTHOR_ID, _create_data(draft.id))

        assert quota_tracker.remaining(AUTHOR_ID, 10) == 10

    def test_invalid_content_does_not_consume_quota(self, review_service, establishment, quota_tracker):
        with pytest.raises(ContentTooShortError):
            review_service.create_review(AUTHOR_ID, _create_data(establishment.id, content="short"))

        assert quota_tracker.remaining(AUTHOR_ID, 10) == 10

    def test_failure_after_consume_rolls_quota_back(self, review_service, establishment, quota_tracker, db_session, monkeypatch):
        def _fail(establishment_id):
            raise StoreUnavailableError()

        monkeypatch.setattr(review_service.aggregates, "recompute", _fail)

        with pytest.raises(StoreUnavailableError):
            review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        assert quota_tracker.remaining(AUTHOR_ID, 10) == 10
        assert _active_reviews(db_session, establishment.id) == []

    def test_failure_after_consume_refunds_external_counter(self, db_session, establishment, monkeypatch):
        quota = Mock()
        quota.refunds_by_rollback = False
        quota.check_and_consume.return_value = QuotaDecision(allowed=True, remaining=9)
        service = ReviewLifecycleService(db_session, quota_tracker=quota)

        def _race(*args, **kwargs):
            raise DuplicateActiveReviewError(establishment.id)

        monkeypatch.setattr(service.store, "create", _race)

        with pytest.raises(DuplicateActiveReviewError):
            service.create_review(AUTHOR_ID, _create_data(establishment.id))

        quota.refund.assert_called_once_with(AUTHOR_ID)

    def test_uncounted_decision_is_not_refunded(self, db_session, establishment, monkeypatch):
        quota = Mock()
        quota.refunds_by_rollback = False
        quota.check_and_consume.return_value = QuotaDecision(allowed=True, remaining=10, counted=False)
        service = ReviewLifecycleService(db_session, quota_tracker=quota)

        def _race(*args, **kwargs):
            raise DuplicateActiveReviewError(establishment.id)

        monkeypatch.setattr(service.store, "create", _race)

        with pytest.raises(DuplicateActiveReviewError):
            service.create_review(AUTHOR_ID, _create_data(establishment.id))

        quota.refund.assert_not_called()

    def test_quota_denial_is_not_refunded(self, db_session, establishment):
        quota = Mock()
        quota.refunds_by_rollback = False
        quota.check_and_consume.return_value = QuotaDecision(allowed=False, remaining=0)
        quota.seconds_until_reset.return_value = 60
        service = ReviewLifecycleService(db_session, quota_tracker=quota)

        with pytest.raises(QuotaExceededError):
            service.create_review(AUTHOR_ID, _create_data(establishment.id))

        quota.refund.assert_not_called()
        assert _active_reviews(db_session, establishment.id) == []

    def test_counter_table_failure_fail_open_still_creates(self, db_session, establishment, clock, monkeypatch):
        backend = DatabaseQuotaBackend(db_session)
        tracker = QuotaTracker(backend, timezone_name="Europe/Minsk", fail_open=True, clock=clock)
        service = ReviewLifecycleService(db_session, quota_tracker=tracker)

        def _broken_increment(user_id, bucket, limit):
            db_session.execute(text("UPDATE missing_quota_table SET consumed = consumed + 1"))

        monkeypatch.setattr(backend, "_increment", _broken_increment)

        created = service.create_review(AUTHOR_ID, _create_data(establishment.id, rating=4))

        assert [r.id for r in _active_reviews(db_session, establishment.id)] == [created.id]
        _assert_aggregate_matches(db_session, establishment)
        assert establishment.review_count == 1

    def test_get_quota(self, review_service, establishment):
        review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        status = review_service.get_quota(AUTHOR_ID)

        assert status.daily_limit == 10
        assert status.used == 1
        assert status.remaining == 9


class TestPartnerResponses:
    """Partner replies through the lifecycle"""

    def test_partner_response_leaves_aggregates_and_edit_flag(self, review_service, establishment, db_session):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id, rating=4))

        result = review_service.respond_to_review(
            created.id, PARTNER_ID, PartnerResponseCreate(content="Thanks for coming by!")
        )

        assert result.partner_response == "Thanks for coming by!"
        assert result.is_edited is False
        _assert_aggregate_matches(db_session, establishment)

    def test_author_cannot_respond_as_partner(self, review_service, establishment):
        created = review_service.create_review(AUTHOR_ID, _create_data(establishment.id))

        with pytest.raises(ReviewForbiddenError):
            review_service.respond_to_review(
                created.id, AUTHOR_ID, PartnerResponseCreate(content="Agreed!")
            )


class TestStoreFailures:
    """Database outages surface as StoreUnavailable"""

    def test_operational_error_becomes_store_unavailable(self, review_service, monkeypatch):
        def _down(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        monkeypatch.setattr(review_service.store, "get", _down)

        with pytest.raises(StoreUnavailableError) as exc_info:
            review_service.get_review(uuid.uuid4())

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == "STORE_UNAVAILABLE"
