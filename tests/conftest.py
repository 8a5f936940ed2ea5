"""
Pytest configuration and fixtures for the review follow-up engine tests
"""
import pytest
from datetime import datetime
from decimal import Decimal

from app import create_app, db
from app.models import Company, Technician, CheckIn, ReviewFollowUpSettings
from app.services import get_review_automation
from app.services.settings_provider import SettingsProvider


# Monday 15 January 2024, 10:30 UTC - inside the default 10:00 send window
MONDAY_MORNING = datetime(2024, 1, 15, 10, 30)


class FakeEmailGateway:
    """Records sends; set ``fail`` or ``error`` to simulate provider problems"""

    def __init__(self):
        self.sent = []
        self.fail = False
        self.error = None

    def send(self, to, from_, subject, html, text=None):
        if self.error is not None:
            raise self.error
        self.sent.append({'to': to, 'from': from_, 'subject': subject, 'html': html, 'text': text})
        return not self.fail


class FakeSmsGateway:
    """Records sends; ``available`` drives is_available()"""

    def __init__(self):
        self.sent = []
        self.available = True
        self.error = None

    def is_available(self):
        return self.available

    def send(self, to, from_, body):
        if self.error is not None:
            raise self.error
        self.sent.append({'to': to, 'from': from_, 'body': body})
        return 'SM{:04d}'.format(len(self.sent))


def make_settings(**overrides):
    """Transient settings object with the default values"""
    values = SettingsProvider(default_timezone='UTC').defaults('company-1')
    values.update(overrides)
    return ReviewFollowUpSettings(**values)


@pytest.fixture
def email_gateway():
    return FakeEmailGateway()


@pytest.fixture
def sms_gateway():
    return FakeSmsGateway()


@pytest.fixture
def app(email_gateway, sms_gateway):
    """Create application instance for testing"""
    app = create_app('testing', email_gateway=email_gateway, sms_gateway=sms_gateway)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

    get_review_automation(app).dispatch_engine.shutdown()


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def api_headers(app):
    return {'X-API-Key': app.config['API_KEY'], 'Content-Type': 'application/json'}


@pytest.fixture
def automation(app):
    return get_review_automation(app)


@pytest.fixture
def tracker(automation):
    return automation.tracker


@pytest.fixture
def settings_provider(automation):
    return automation.settings_provider


@pytest.fixture
def company_factory(app):
    """Factory for creating tenants"""
    def _create_company(**kwargs):
        defaults = {'name': 'Sparkle Plumbing', 'is_active': True, 'contact_email': 'office@sparkle.test'}
        defaults.update(kwargs)
        company = Company(**defaults)
        db.session.add(company)
        db.session.commit()
        return company

    return _create_company


@pytest.fixture
def company(company_factory):
    return company_factory()


@pytest.fixture
def technician(company):
    tech = Technician(company_id=company.id, name='Dana Reyes', email='dana@sparkle.test')
    db.session.add(tech)
    db.session.commit()
    return tech


@pytest.fixture
def check_in_factory(company, technician):
    """Factory for creating completed service visits"""
    def _create_check_in(**kwargs):
        defaults = {
            'company_id': company.id,
            'technician_id': technician.id,
            'job_type': 'Water Heater Repair',
            'city': 'Tampa',
            'customer_name': 'Ann Lee',
            'customer_email': 'ann@example.com',
            'customer_phone': '(305) 555-1234',
            'invoice_amount': Decimal('250.00'),
            'positive_experience': True,
        }
        defaults.update(kwargs)
        check_in = CheckIn(**defaults)
        db.session.add(check_in)
        db.session.commit()
        return check_in

    return _create_check_in


@pytest.fixture
def review_factory(tracker, company, technician):
    """Factory returning (review_request, status) pairs"""
    def _create_review(email='ann@example.com', phone=None, name='Ann Lee', company_id=None, check_in_id=None):
        review_request = tracker.create_request(
            {'name': name, 'email': email, 'phone': phone},
            technician.id,
            company_id or company.id,
            'Water Heater Repair',
        )
        status = tracker.create_status(review_request.id, check_in_id=check_in_id)
        return review_request, status

    return _create_review
