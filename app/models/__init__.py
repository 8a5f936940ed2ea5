"""SQLAlchemy models package"""
from .company import Company, Technician, CheckIn
from .review_request import ReviewRequest, ReviewRequestStatus
from .review_settings import ReviewFollowUpSettings, SmartTimingPreferences

__all__ = [
    'Company',
    'Technician',
    'CheckIn',
    'ReviewRequest',
    'ReviewRequestStatus',
    'ReviewFollowUpSettings',
    'SmartTimingPreferences',
]
