from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
import logging
import os

db = SQLAlchemy()

logger = logging.getLogger(__name__)

_CRITICAL_ENV_VARS = [
    "SECRET_KEY",
    "API_KEY",
    "DATABASE_URL",
    "REVIEW_BASE_URL",
]

_RECOMMENDED_ENV_VARS = [
    "RESEND_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "CORS_ORIGINS",
]


def _init_sentry(app):
    """Sentry error monitoring (optional -- only active when SENTRY_DSN is set)"""
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.1),
    )


def _check_environment(config_name):
    """Production startup checks"""
    if config_name in ("development", "testing"):
        return
    missing_critical = [v for v in _CRITICAL_ENV_VARS if not os.environ.get(v)]
    missing_recommended = [v for v in _RECOMMENDED_ENV_VARS if not os.environ.get(v)]
    if missing_critical:
        logger.critical("MISSING CRITICAL ENV VARS (app may not work correctly): %s",
                        ", ".join(missing_critical))
    if missing_recommended:
        logger.warning("Missing recommended env vars: %s", ", ".join(missing_recommended))


def create_app(config_name=None, email_gateway=None, sms_gateway=None, holiday_calendar=None):
    """Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    from config import config
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s',
    )
    from app.middleware import init_request_ids
    init_request_ids(app)
    _check_environment(config_name)
    _init_sentry(app)

    # Initialize extensions
    db.init_app(app)
    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)

    from app.extensions import limiter
    limiter.init_app(app)

    from app import models  # noqa: F401  (register tables)
    from app.errors import register_error_handlers
    register_error_handlers(app)

    from app.services import init_review_automation
    init_review_automation(app, email_gateway=email_gateway, sms_gateway=sms_gateway,
                           holiday_calendar=holiday_calendar)

    # Register blueprints
    from app.routes.review_automation import review_automation_bp
    from app.routes.review_links import review_links_bp, review_events_bp

    api_prefix = app.config['API_PREFIX']
    app.register_blueprint(review_automation_bp, url_prefix=f'{api_prefix}/review-automation')
    app.register_blueprint(review_events_bp, url_prefix=f'{api_prefix}/review-links')
    app.register_blueprint(review_links_bp, url_prefix='/review')

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy', 'service': 'reviewflow'}, 200

    return app
