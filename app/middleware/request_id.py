"""
Request ids for review link and admin API calls.

A well-formed incoming X-Request-ID is kept so a proxy's id survives;
anything else is replaced with a fresh one. The id lives on ``g`` for the
request, is echoed back on the response, and is stamped on every log record
as ``%(request_id)s``.
"""
import logging
import re
import uuid

from flask import g, has_request_context, request

REQUEST_ID_HEADER = 'X-Request-ID'

_VALID_REQUEST_ID = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


def current_request_id():
    """Id of the request being handled, '-' outside a request"""
    if has_request_context():
        return getattr(g, 'request_id', None) or '-'
    return '-'


class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = current_request_id()
        return True


def init_request_ids(app):
    """Assign, echo and log a request id for every request"""

    @app.before_request
    def assign_request_id():
        incoming = request.headers.get(REQUEST_ID_HEADER, '')
        g.request_id = incoming if _VALID_REQUEST_ID.match(incoming) else uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response):
        response.headers[REQUEST_ID_HEADER] = current_request_id()
        return response

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
