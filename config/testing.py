"""
Testing configuration for the review follow-up engine
"""
import os
from config.settings import Config


class TestingConfig(Config):
    """Testing configuration with isolated database and safe defaults"""

    TESTING = True
    DEBUG = False

    # Use in-memory SQLite for fast tests
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'TEST_DATABASE_URL',
        'sqlite://'
    )
    SQLALCHEMY_ENGINE_OPTIONS = {}

    API_KEY = 'test-api-key'
    REVIEW_BASE_URL = 'https://reviews.test'

    # No real providers in tests
    RESEND_API_KEY = ''
    SENDGRID_API_KEY = ''
    TWILIO_ACCOUNT_SID = ''
    TWILIO_AUTH_TOKEN = ''
    TWILIO_PHONE_NUMBER = '+15550000000'
    EMAIL_FROM = 'reviews@reviewflow.test'

    CHANNEL_TIMEOUT_SECONDS = 2.0

    # Never start the background scheduler; passes run inline
    ENABLE_SCHEDULER = False
    RECONCILIATION_MAX_WORKERS = 1

    TIMEZONE = 'UTC'

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    # Logging
    LOG_LEVEL = 'WARNING'
    SENTRY_DSN = ''
