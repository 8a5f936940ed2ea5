"""
Review link tokens.

A token is an unguessable string that ties a public review link to one
ReviewRequest. Once a request has a token it keeps it forever.
"""
import logging
import secrets

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import StoreError
from app.models import ReviewRequest

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def new_token():
    """Cryptographically random URL-safe token"""
    return secrets.token_urlsafe(TOKEN_BYTES)


class TokenLedger:
    """Issues and resolves review link tokens and records link events"""

    def __init__(self, tracker, base_url):
        self.tracker = tracker
        self.base_url = (base_url or '').rstrip('/')

    def issue(self, request_id):
        """Return the request's token, issuing one if it has none yet"""
        review_request = self.tracker.get_request(request_id)
        if review_request.token:
            return review_request.token

        token = new_token()
        try:
            # Only the first issuer wins; a concurrent issuer re-reads below
            ReviewRequest.query.filter(
                ReviewRequest.id == request_id,
                ReviewRequest.token.is_(None),
            ).update({'token': token}, synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to issue token for review request {request_id}: {exc}') from exc

        db.session.refresh(review_request)
        logger.info("Issued review link token for request %s", request_id)
        return review_request.token

    def resolve(self, token):
        """ReviewRequest for ``token``; NotFoundError if unknown"""
        return self.tracker.get_request_by_token(token)

    def review_link(self, token):
        return f'{self.base_url}/review/{token}'

    def tracking_link(self, token):
        return f'{self.base_url}/review/track/{token}'

    def unsubscribe_link(self, token):
        return f'{self.base_url}/review/unsubscribe/{token}'

    def link_for_request(self, review_request):
        """Link for outgoing messages: records the click, then redirects to the review page"""
        token = review_request.token or self.issue(review_request.id)
        return self.tracking_link(token)

    def record_click(self, token, now=None):
        return self.tracker.record_event(token, 'click', now=now)

    def record_submission(self, token, now=None):
        return self.tracker.record_event(token, 'submit', now=now)

    def record_unsubscribe(self, token, now=None):
        return self.tracker.record_event(token, 'unsubscribe', now=now)
