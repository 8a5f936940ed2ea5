"""
Per-tenant review follow-up settings.

``SettingsProvider.get`` is the only place settings rows are created, and
``SettingsProvider.defaults`` the only place default values live.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from app.errors import NotFoundError, StoreError, ValidationError
from app.models import Company, ReviewFollowUpSettings, SmartTimingPreferences
from app.models.review_request import STAGE_INITIAL, STAGE_FIRST, STAGE_SECOND, STAGE_FINAL
from app.services.message_composer import DEFAULT_EMAIL_TEMPLATES, DEFAULT_SUBJECT_TEMPLATES

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

DELAY_FIELDS = ('initial_delay', 'first_follow_up_delay', 'second_follow_up_delay', 'final_follow_up_delay')

BOOL_FIELDS = (
    'enable_first_follow_up', 'enable_second_follow_up', 'enable_final_follow_up',
    'enable_email_requests', 'enable_sms_requests', 'send_weekends',
    'include_service_details', 'include_technician_photo', 'include_company_logo',
    'enable_incentives', 'target_positive_experiences_only', 'enable_smart_timing',
    'is_active',
)

TEXT_FIELDS = (
    'initial_message', 'initial_subject',
    'first_follow_up_message', 'first_follow_up_subject',
    'second_follow_up_message', 'second_follow_up_subject',
    'final_follow_up_message', 'final_follow_up_subject',
    'incentive_details',
)

# enable flag (None = always enabled) -> template fields that must be non-empty
STAGE_TEMPLATE_FIELDS = (
    (None, ('initial_message', 'initial_subject')),
    ('enable_first_follow_up', ('first_follow_up_message', 'first_follow_up_subject')),
    ('enable_second_follow_up', ('second_follow_up_message', 'second_follow_up_subject')),
    ('enable_final_follow_up', ('final_follow_up_message', 'final_follow_up_subject')),
)

UPDATABLE_FIELDS = set(DELAY_FIELDS) | set(BOOL_FIELDS) | set(TEXT_FIELDS) | {
    'preferred_send_time', 'timezone', 'target_service_types',
    'target_minimum_invoice_amount', 'smart_timing_preferences',
}


class SettingsProvider:
    """Get-or-create and validated updates for ReviewFollowUpSettings"""

    def __init__(self, default_timezone='UTC'):
        self.default_timezone = default_timezone

    def defaults(self, company_id):
        """Default settings for a company that has never configured them"""
        return {
            'company_id': company_id,

            'initial_delay': 2,  # days after service, informational only
            'initial_message': DEFAULT_EMAIL_TEMPLATES[STAGE_INITIAL],
            'initial_subject': DEFAULT_SUBJECT_TEMPLATES[STAGE_INITIAL],

            'enable_first_follow_up': True,
            'first_follow_up_delay': 3,  # days after initial request
            'first_follow_up_message': DEFAULT_EMAIL_TEMPLATES[STAGE_FIRST],
            'first_follow_up_subject': DEFAULT_SUBJECT_TEMPLATES[STAGE_FIRST],

            'enable_second_follow_up': True,
            'second_follow_up_delay': 5,  # days after first follow-up
            'second_follow_up_message': DEFAULT_EMAIL_TEMPLATES[STAGE_SECOND],
            'second_follow_up_subject': DEFAULT_SUBJECT_TEMPLATES[STAGE_SECOND],

            'enable_final_follow_up': False,
            'final_follow_up_delay': 7,  # days after second follow-up
            'final_follow_up_message': DEFAULT_EMAIL_TEMPLATES[STAGE_FINAL],
            'final_follow_up_subject': DEFAULT_SUBJECT_TEMPLATES[STAGE_FINAL],

            'enable_email_requests': True,
            'enable_sms_requests': False,
            'preferred_send_time': '10:00',
            'send_weekends': False,
            'timezone': self.default_timezone,

            'include_service_details': True,
            'include_technician_photo': True,
            'include_company_logo': True,
            'enable_incentives': False,
            'incentive_details': None,

            'target_positive_experiences_only': False,
            'target_service_types': [],
            'target_minimum_invoice_amount': Decimal('0'),

            'enable_smart_timing': False,
            'smart_timing_preferences': SmartTimingPreferences(),

            'is_active': True,
        }

    def get(self, company_id):
        """Return the company's settings, creating the defaults on first read"""
        settings = ReviewFollowUpSettings.query.filter_by(company_id=company_id).first()
        if settings:
            return settings

        if db.session.get(Company, company_id) is None:
            raise NotFoundError(f'Company {company_id} not found')

        try:
            settings = ReviewFollowUpSettings(**self.defaults(company_id))
            db.session.add(settings)
            db.session.commit()
            logger.info("Created default review follow-up settings for company %s", company_id)
            return settings
        except IntegrityError:
            # Another worker created the row first
            db.session.rollback()
            settings = ReviewFollowUpSettings.query.filter_by(company_id=company_id).first()
            if settings is None:
                raise StoreError(f'Could not create settings for company {company_id}')
            return settings
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to load settings for company {company_id}: {exc}') from exc

    def update(self, company_id, patch):
        """Apply a validated patch; nothing is written if validation fails"""
        if not isinstance(patch, dict):
            raise ValidationError('Settings patch must be an object')

        settings = self.get(company_id)
        cleaned = self._clean(patch)
        if 'smart_timing_preferences' in cleaned:
            current = settings.smart_timing_preferences.to_dict()
            current.update(cleaned['smart_timing_preferences'])
            cleaned['smart_timing_preferences'] = SmartTimingPreferences.from_dict(current)

        merged = {name: getattr(settings, name) for name in UPDATABLE_FIELDS}
        merged.update(cleaned)
        self._check_templates(merged)

        for name, value in cleaned.items():
            setattr(settings, name, value)

        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f'Failed to update settings for company {company_id}: {exc}') from exc

        logger.info("Updated review follow-up settings for company %s: %s",
                    company_id, ', '.join(sorted(cleaned)))
        return settings

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def _clean(self, patch):
        errors = {}
        cleaned = {}

        unknown = set(patch) - UPDATABLE_FIELDS
        for name in sorted(unknown):
            errors[name] = 'Unknown setting'

        for name in DELAY_FIELDS:
            if name in patch:
                value = patch[name]
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    errors[name] = 'Must be a non-negative integer'
                else:
                    cleaned[name] = value

        for name in BOOL_FIELDS:
            if name in patch:
                if not isinstance(patch[name], bool):
                    errors[name] = 'Must be true or false'
                else:
                    cleaned[name] = patch[name]

        for name in TEXT_FIELDS:
            if name in patch:
                value = patch[name]
                if value is not None and not isinstance(value, str):
                    errors[name] = 'Must be a string'
                else:
                    cleaned[name] = value

        if 'preferred_send_time' in patch:
            value = patch['preferred_send_time']
            if not isinstance(value, str) or not _TIME_PATTERN.match(value):
                errors['preferred_send_time'] = 'Must be a 24h time formatted HH:MM'
            else:
                cleaned['preferred_send_time'] = value

        if 'timezone' in patch:
            value = patch['timezone']
            try:
                ZoneInfo(value)
                cleaned['timezone'] = value
            except (ZoneInfoNotFoundError, ValueError, TypeError):
                errors['timezone'] = 'Unknown timezone'

        if 'target_service_types' in patch:
            value = patch['target_service_types']
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                errors['target_service_types'] = 'Must be a list of strings'
            else:
                cleaned['target_service_types'] = value

        if 'target_minimum_invoice_amount' in patch:
            value = patch['target_minimum_invoice_amount']
            try:
                if isinstance(value, bool):
                    raise InvalidOperation
                amount = Decimal(str(value))
                if amount < 0 or not amount.is_finite():
                    raise InvalidOperation
                cleaned['target_minimum_invoice_amount'] = amount
            except (InvalidOperation, ValueError):
                errors['target_minimum_invoice_amount'] = 'Must be a non-negative number'

        if 'smart_timing_preferences' in patch:
            prefs, prefs_errors = _clean_smart_timing(patch['smart_timing_preferences'])
            if prefs_errors:
                errors['smart_timing_preferences'] = prefs_errors
            else:
                cleaned['smart_timing_preferences'] = prefs

        if errors:
            raise ValidationError('Invalid review follow-up settings', errors)
        return cleaned

    def _check_templates(self, merged):
        errors = {}
        for flag, fields in STAGE_TEMPLATE_FIELDS:
            if flag is not None and not merged.get(flag):
                continue
            for name in fields:
                value = merged.get(name)
                if not value or not value.strip():
                    errors[name] = 'Required while this stage is enabled'
        if errors:
            raise ValidationError('Invalid review follow-up settings', errors)


def _clean_smart_timing(value):
    if isinstance(value, SmartTimingPreferences):
        value = value.to_dict()
    if not isinstance(value, dict):
        return None, 'Must be an object'

    errors = {}
    allowed = set(SmartTimingPreferences.__dataclass_fields__)
    for name in sorted(set(value) - allowed):
        errors[name] = 'Unknown preference'

    for name in allowed - {'preferred_days'}:
        if name in value and not isinstance(value[name], bool):
            errors[name] = 'Must be true or false'

    if 'preferred_days' in value:
        days = value['preferred_days']
        if (not isinstance(days, list)
                or not all(isinstance(d, int) and not isinstance(d, bool) and 0 <= d <= 6 for d in days)):
            errors['preferred_days'] = 'Must be a list of days 0 (Sunday) to 6 (Saturday)'

    if errors:
        return None, errors
    return dict(value), None
