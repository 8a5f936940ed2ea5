"""Per-tenant review follow-up settings model"""
from dataclasses import dataclass, field, asdict

from sqlalchemy.types import TypeDecorator, JSON

from app import db
from .base import BaseModel, TenantMixin


@dataclass
class SmartTimingPreferences:
    """Smart timing options. Days are numbered 0 = Sunday .. 6 = Saturday."""
    prefer_weekdays: bool = True
    preferred_days: list = field(default_factory=lambda: [1, 2, 3, 4, 5])
    avoid_holidays: bool = True
    avoid_late_night: bool = True
    optimize_by_open_rates: bool = True

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        prefs = cls(**known)
        prefs.preferred_days = list(prefs.preferred_days or [])
        return prefs

    def to_dict(self):
        return asdict(self)


class SmartTimingPreferencesType(TypeDecorator):
    """Stores SmartTimingPreferences as JSON, loads it back typed"""
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, SmartTimingPreferences):
            return value.to_dict()
        return SmartTimingPreferences.from_dict(value).to_dict()

    def process_result_value(self, value, dialect):
        if value is None:
            return SmartTimingPreferences()
        return SmartTimingPreferences.from_dict(value)


class ReviewFollowUpSettings(BaseModel, TenantMixin):
    """
    Review follow-up settings, one row per company. Rows are only created
    through SettingsProvider.get, which owns the default values.
    """
    __tablename__ = 'review_follow_up_settings'

    # Initial request (sent as soon as the timing gate allows)
    initial_delay = db.Column(db.Integer, nullable=False)  # stored for display, never gates sending
    initial_message = db.Column(db.Text, nullable=False)
    initial_subject = db.Column(db.String(255), nullable=False)

    # First follow-up
    enable_first_follow_up = db.Column(db.Boolean, nullable=False)
    first_follow_up_delay = db.Column(db.Integer, nullable=False)
    first_follow_up_message = db.Column(db.Text, nullable=False)
    first_follow_up_subject = db.Column(db.String(255), nullable=False)

    # Second follow-up
    enable_second_follow_up = db.Column(db.Boolean, nullable=False)
    second_follow_up_delay = db.Column(db.Integer, nullable=False)
    second_follow_up_message = db.Column(db.Text, nullable=False)
    second_follow_up_subject = db.Column(db.String(255), nullable=False)

    # Final follow-up
    enable_final_follow_up = db.Column(db.Boolean, nullable=False)
    final_follow_up_delay = db.Column(db.Integer, nullable=False)
    final_follow_up_message = db.Column(db.Text)
    final_follow_up_subject = db.Column(db.String(255))

    # Channels and time settings
    enable_email_requests = db.Column(db.Boolean, nullable=False)
    enable_sms_requests = db.Column(db.Boolean, nullable=False)
    preferred_send_time = db.Column(db.String(5), nullable=False)  # "HH:MM", tenant local time
    send_weekends = db.Column(db.Boolean, nullable=False)
    timezone = db.Column(db.String(64), nullable=False)

    # Presentation options
    include_service_details = db.Column(db.Boolean, nullable=False)
    include_technician_photo = db.Column(db.Boolean, nullable=False)
    include_company_logo = db.Column(db.Boolean, nullable=False)
    enable_incentives = db.Column(db.Boolean, nullable=False)
    incentive_details = db.Column(db.Text)

    # Targeting, evaluated when a request is created
    target_positive_experiences_only = db.Column(db.Boolean, nullable=False)
    target_service_types = db.Column(db.JSON, nullable=False)
    target_minimum_invoice_amount = db.Column(db.Numeric(10, 2), nullable=False)

    # Smart timing
    enable_smart_timing = db.Column(db.Boolean, nullable=False)
    smart_timing_preferences = db.Column(SmartTimingPreferencesType, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('company_id', name='unique_review_settings_per_company'),
    )

    def __repr__(self):
        return f'<ReviewFollowUpSettings company={self.company_id}>'

    @property
    def preferred_hour_minute(self):
        hour, minute = self.preferred_send_time.split(':')
        return int(hour), int(minute)

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        if 'smart_timing_preferences' in data:
            data['smart_timing_preferences'] = self.smart_timing_preferences.to_dict()
        if data.get('target_minimum_invoice_amount') is not None:
            data['target_minimum_invoice_amount'] = float(self.target_minimum_invoice_amount)
        return data
