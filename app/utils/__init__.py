"""Utilities package"""
from .validators import validate_email, validate_phone
from .decorators import require_api_key

__all__ = [
    'validate_email',
    'validate_phone',
    'require_api_key',
]
