"""
Error types raised by the review follow-up engine.

Each error carries the HTTP status it maps to so the Flask error handler
registered in ``create_app`` can turn it into a JSON response.
"""
import logging

from flask import jsonify

from app.middleware import current_request_id

logger = logging.getLogger(__name__)


class ReviewAutomationError(Exception):
    """Base class for all engine errors"""
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {'error': self.message}


class ValidationError(ReviewAutomationError):
    """Rejected settings patch or request payload"""
    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        data = super().to_dict()
        if self.errors:
            data['details'] = self.errors
        return data


class NotFoundError(ReviewAutomationError):
    """Unknown request, token, status or tenant"""
    status_code = 404


class ConflictError(ReviewAutomationError):
    """Stage already advanced (or not advanceable) at the store"""
    status_code = 409


class ChannelUnavailableError(ReviewAutomationError):
    """A delivery channel could not send; recovered inside DispatchEngine"""
    status_code = 503


class StoreError(ReviewAutomationError):
    """Persistence failure; fatal for the current unit of work only"""
    status_code = 500


def register_error_handlers(app):
    """Map engine errors to JSON responses"""

    @app.errorhandler(ReviewAutomationError)
    def handle_review_automation_error(error):
        if error.status_code >= 500:
            logger.error("%s (request %s)", error.message, current_request_id())
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'error': 'Not found'}), 404
