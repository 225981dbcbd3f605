from flask import Flask
from .extensions import db, migrate, bcrypt, jwt
import logging
import os

logger = logging.getLogger(__name__)


def _setup_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        os.makedirs('logs', exist_ok=True)
        file_handler = RotatingFileHandler(
            'logs/app.log',
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(level)
        logging.getLogger().addHandler(file_handler)
        app.logger.info('Application startup')


def create_app(config_name=None, mailer=None, billing=None):
    """
    Create Flask application factory

    Args:
        config_name: 'development', 'production' or 'testing' (defaults to FLASK_ENV)
        mailer: object with ``configured`` and ``send(to, msg)``; built from config when omitted
        billing: object with ``configured`` and ``invoice_appointment(...)``; built from config when omitted
    """
    app = Flask(__name__)

    # Load configuration
    from .config import config, get_config
    if config_name:
        app.config.from_object(config.get(config_name, config['default']))
    else:
        app.config.from_object(get_config())

    if app.config.get('IS_PRODUCTION') and not (
        app.config.get('JWT_SECRET_KEY') and app.config.get('JWT_REFRESH_SECRET_KEY')
    ):
        raise RuntimeError('JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set in production')
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        raise RuntimeError('DATABASE_URL or DB_HOST/DB_NAME must be set')

    _setup_logging(app)

    app.config['MAX_CONTENT_LENGTH'] = app.config['AVATAR_MAX_BYTES'] + 64 * 1024

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)

    from .services.session_service import init_jwt_callbacks
    init_jwt_callbacks(jwt)

    # Outbound integrations, shared for the process
    from .services.email_service import Mailer
    from .services.billing_service import StripeBilling
    (mailer or Mailer.from_config(app.config)).init_app(app)
    (billing or StripeBilling.from_config(app.config)).init_app(app)

    from .utils.cors import init_cors
    from .utils.csrf import init_csrf
    from .errors import register_error_handlers
    from .middleware import setup_middleware
    init_cors(app)
    init_csrf(app)
    register_error_handlers(app)
    setup_middleware(app)

    # Import models to register them with SQLAlchemy
    with app.app_context():
        from . import models  # noqa: F401

        from .routes import (
            auth_bp, health_bp, patient_bp, note_bp, appointment_bp,
            payment_bp, lookup_bp, profile_bp, uploads_bp, dashboard_bp,
        )
        from .routes.profile import upload_url_prefix
        app.register_blueprint(health_bp)  # Register health check first
        app.register_blueprint(auth_bp)
        app.register_blueprint(patient_bp)
        app.register_blueprint(note_bp)
        app.register_blueprint(appointment_bp)
        app.register_blueprint(payment_bp)
        app.register_blueprint(lookup_bp)
        app.register_blueprint(profile_bp)
        app.register_blueprint(dashboard_bp)
        app.register_blueprint(uploads_bp, url_prefix=upload_url_prefix(app.config))

    return app
