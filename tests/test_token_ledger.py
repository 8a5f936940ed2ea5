"""
Review link token tests
"""
import pytest

from app import db
from app.errors import NotFoundError
from app.services.token_ledger import new_token


@pytest.fixture
def ledger(automation):
    return automation.ledger


class TestTokens:

    def test_new_token_is_url_safe_and_random(self):
        tokens = {new_token() for _ in range(50)}
        assert len(tokens) == 50
        for token in tokens:
            assert len(token) >= 40
            assert all(ch.isalnum() or ch in '-_' for ch in token)

    def test_issue_returns_existing_token(self, ledger, review_factory):
        review_request, _ = review_factory()
        assert ledger.issue(review_request.id) == review_request.token

    def test_issue_for_request_without_token_is_stable(self, ledger, review_factory):
        review_request, _ = review_factory()
        review_request.token = None
        db.session.commit()

        token = ledger.issue(review_request.id)

        assert token
        assert ledger.issue(review_request.id) == token
        assert ledger.resolve(token).id == review_request.id

    def test_resolve(self, ledger, review_factory):
        review_request, _ = review_factory()
        assert ledger.resolve(review_request.token).id == review_request.id

    @pytest.mark.parametrize('token', ['unknown', '', None])
    def test_resolve_unknown(self, ledger, token):
        with pytest.raises(NotFoundError):
            ledger.resolve(token)


class TestLinks:

    def test_links_use_base_url(self, ledger):
        assert ledger.review_link('abc') == 'https://reviews.test/review/abc'
        assert ledger.tracking_link('abc') == 'https://reviews.test/review/track/abc'
        assert ledger.unsubscribe_link('abc') == 'https://reviews.test/review/unsubscribe/abc'

    def test_link_for_request(self, ledger, review_factory):
        review_request, _ = review_factory()
        assert ledger.link_for_request(review_request) == f'https://reviews.test/review/track/{review_request.token}'


class TestEvents:

    def test_record_click_then_submission(self, ledger, review_factory):
        review_request, _ = review_factory()

        clicked = ledger.record_click(review_request.token)
        assert clicked.link_clicked is True

        submitted = ledger.record_submission(review_request.token)
        assert submitted.review_submitted is True
        assert submitted.status == 'completed'

    def test_unsubscribe_after_completion_keeps_completed(self, ledger, review_factory):
        review_request, _ = review_factory()
        ledger.record_submission(review_request.token)

        result = ledger.record_unsubscribe(review_request.token)

        assert result.status == 'completed'
        assert result.unsubscribed_at is not None
