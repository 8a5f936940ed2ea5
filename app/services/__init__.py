"""
Review follow-up engine services.

``init_review_automation`` wires the components together once per app and
stores them on ``app.extensions['review_automation']``.
"""
import atexit
import logging

from .dispatch_engine import DispatchEngine
from .gateways import build_email_gateway, build_sms_gateway
from .message_composer import MessageComposer
from .reconciliation import ReconciliationScheduler
from .request_tracker import RequestTracker
from .review_automation import ReviewAutomationService
from .settings_provider import SettingsProvider
from .token_ledger import TokenLedger

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'review_automation'


class ReviewAutomation:
    """Holds the wired components for one Flask app"""

    def __init__(self, tracker, settings_provider, composer, ledger, dispatch_engine, scheduler, service):
        self.tracker = tracker
        self.settings_provider = settings_provider
        self.composer = composer
        self.ledger = ledger
        self.dispatch_engine = dispatch_engine
        self.scheduler = scheduler
        self.service = service


def init_review_automation(app, email_gateway=None, sms_gateway=None, holiday_calendar=None):
    """Build the engine for ``app``; gateways default to the configured providers"""
    config = app.config

    tracker = RequestTracker()
    settings_provider = SettingsProvider(default_timezone=config['TIMEZONE'])
    composer = MessageComposer()
    ledger = TokenLedger(tracker, config['REVIEW_BASE_URL'])

    dispatch_engine = DispatchEngine(
        tracker,
        composer,
        ledger,
        email_gateway or build_email_gateway(config, debug=app.debug),
        sms_gateway or build_sms_gateway(config),
        email_from=config['EMAIL_FROM'],
        sms_from=config['TWILIO_PHONE_NUMBER'],
        timeout=config['CHANNEL_TIMEOUT_SECONDS'],
    )

    scheduler = ReconciliationScheduler(
        app,
        tracker,
        settings_provider,
        dispatch_engine,
        max_workers=config['RECONCILIATION_MAX_WORKERS'],
        interval_hours=config['RECONCILIATION_INTERVAL_HOURS'],
        warmup_seconds=config['RECONCILIATION_WARMUP_SECONDS'],
        default_timezone=config['TIMEZONE'],
        holiday_calendar=holiday_calendar,
    )

    automation = ReviewAutomation(
        tracker=tracker,
        settings_provider=settings_provider,
        composer=composer,
        ledger=ledger,
        dispatch_engine=dispatch_engine,
        scheduler=scheduler,
        service=ReviewAutomationService(tracker, settings_provider),
    )
    app.extensions[EXTENSION_KEY] = automation
    return automation


def init_scheduler(app):
    """Start the reconciliation scheduler.

    Only runs if ENABLE_SCHEDULER is set in the app config.
    """
    if not app.config.get('ENABLE_SCHEDULER'):
        logger.info("Scheduler disabled (set ENABLE_SCHEDULER=true to enable)")
        return None

    scheduler = app.extensions[EXTENSION_KEY].scheduler
    scheduler.start()
    atexit.register(scheduler.shutdown)
    return scheduler


def get_review_automation(app):
    return app.extensions[EXTENSION_KEY]
