"""
Public review link endpoints.

The review page itself is rendered elsewhere; these endpoints only record
clicks, submissions and unsubscribes against the link token. Every event is
idempotent so retried redirects and webhooks are harmless.
"""
from flask import Blueprint, current_app, jsonify, redirect

from app.extensions import limiter
from app.services import get_review_automation

# /review/...
review_links_bp = Blueprint('review_links', __name__)

# /api/review-links/...
review_events_bp = Blueprint('review_events', __name__)


def _ledger():
    return get_review_automation(current_app).ledger


def _event_response(status):
    return jsonify({
        'success': True,
        'status': status.status,
        'link_clicked': status.link_clicked,
        'review_submitted': status.review_submitted,
        'unsubscribed': status.unsubscribed_at is not None,
    }), 200


# ---------------------------------------------------------------------------
# GET /review/track/<token> - record click, forward to the review page
# ---------------------------------------------------------------------------
@review_links_bp.route('/track/<token>', methods=['GET'])
@limiter.limit("30 per minute")
def track_click(token):
    ledger = _ledger()
    ledger.record_click(token)
    return redirect(ledger.review_link(token), code=302)


# ---------------------------------------------------------------------------
# GET|POST /review/unsubscribe/<token> - link in the email footer
# ---------------------------------------------------------------------------
@review_links_bp.route('/unsubscribe/<token>', methods=['GET', 'POST'])
@limiter.limit("30 per minute")
def unsubscribe_link(token):
    return _event_response(_ledger().record_unsubscribe(token))


# ---------------------------------------------------------------------------
# POST /api/review-links/<token>/click|submitted|unsubscribe
# ---------------------------------------------------------------------------
@review_events_bp.route('/<token>/click', methods=['POST'])
@limiter.limit("30 per minute")
def record_click(token):
    return _event_response(_ledger().record_click(token))


@review_events_bp.route('/<token>/submitted', methods=['POST'])
@limiter.limit("30 per minute")
def record_submission(token):
    """Called by the review page after the rating and feedback are stored"""
    return _event_response(_ledger().record_submission(token))


@review_events_bp.route('/<token>/unsubscribe', methods=['POST'])
@limiter.limit("30 per minute")
def record_unsubscribe(token):
    return _event_response(_ledger().record_unsubscribe(token))
