"""
Route decorators
"""
import hmac
from functools import wraps

from flask import current_app, jsonify, request


def require_api_key(f):
    """Reject requests without a matching X-API-Key header"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        api_key = request.headers.get('X-API-Key') or ''
        if not hmac.compare_digest(api_key, current_app.config['API_KEY']):
            return jsonify({'error': 'Invalid or missing API key'}), 401
        return f(*args, **kwargs)
    return decorated_function
