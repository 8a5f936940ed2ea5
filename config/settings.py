"""
Configuration settings for different environments
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default='false'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


def _database_url(default):
    url = os.environ.get('DATABASE_URL') or default
    # Fix postgres:// to postgresql:// for SQLAlchemy
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Admin API key (X-API-Key header on /api/review-automation)
    API_KEY = os.environ.get('API_KEY') or 'dev-api-key-change-in-production'

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url('postgresql://localhost/reviewflow_dev')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }

    API_PREFIX = '/api'

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

    # Rate limiting for public review link endpoints
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'

    # Public review links are built as REVIEW_BASE_URL + "/review/" + token
    REVIEW_BASE_URL = os.environ.get('REVIEW_BASE_URL', 'http://localhost:5000')

    # Email: Resend (preferred) or SendGrid (legacy)
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY', '')
    SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
    EMAIL_FROM = os.environ.get('EMAIL_FROM', 'reviews@reviewflow.app')
    EMAIL_FROM_NAME = os.environ.get('EMAIL_FROM_NAME', 'ReviewFlow')

    # SMS
    TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID', '')
    TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN', '')
    TWILIO_PHONE_NUMBER = os.environ.get('TWILIO_PHONE_NUMBER',
                                         os.environ.get('TWILIO_FROM_NUMBER', ''))

    # Every outbound channel call is bounded by this timeout
    CHANNEL_TIMEOUT_SECONDS = float(os.environ.get('CHANNEL_TIMEOUT_SECONDS', '10'))

    # Reconciliation scheduler
    ENABLE_SCHEDULER = _env_bool('ENABLE_SCHEDULER')
    RECONCILIATION_INTERVAL_HOURS = int(os.environ.get('RECONCILIATION_INTERVAL_HOURS', '1'))
    RECONCILIATION_WARMUP_SECONDS = int(os.environ.get('RECONCILIATION_WARMUP_SECONDS', '30'))
    RECONCILIATION_MAX_WORKERS = int(os.environ.get('RECONCILIATION_MAX_WORKERS', '4'))

    # Default timezone for tenants that have not configured one
    TIMEZONE = os.environ.get('TIMEZONE', 'America/New_York')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Sentry error monitoring (optional -- only active when SENTRY_DSN is set)
    SENTRY_DSN = os.environ.get('SENTRY_DSN', '')
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1'))


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///reviewflow.db')
    SQLALCHEMY_ENGINE_OPTIONS = {}


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 20,
        'max_overflow': 40,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }
