import os
import re
from datetime import timedelta

from dotenv import load_dotenv
from sqlalchemy.engine import URL

load_dotenv()


def parse_duration(value, default):
    """
    Parse a short duration string into a timedelta.

    Accepts "15m", "1h", "2d", "900s" or a bare number of seconds.
    Falls back to ``default`` when the value is empty or unparseable.
    """
    if not value:
        return default
    match = re.fullmatch(r'\s*(\d+)\s*([smhd]?)\s*', str(value))
    if not match:
        return default
    amount, unit = int(match.group(1)), match.group(2) or 's'
    return {
        's': timedelta(seconds=amount),
        'm': timedelta(minutes=amount),
        'h': timedelta(hours=amount),
        'd': timedelta(days=amount),
    }[unit]


def _env_flag(name, default):
    return os.getenv(name, default).strip().lower() not in ('false', '0', 'no', 'off')


def _database_uri():
    """DATABASE_URL wins; otherwise build a MySQL URL from the DB_* parts."""
    url = os.getenv('DATABASE_URL')
    if url:
        return url
    if not os.getenv('DB_HOST'):
        return None
    return URL.create(
        'mysql+pymysql',
        username=os.getenv('DB_USER'),
        password=os.getenv('DB_PASSWORD'),
        host=os.getenv('DB_HOST'),
        port=int(os.getenv('DB_PORT', '3306')),
        database=os.getenv('DB_NAME'),
    ).render_as_string(hide_password=False)


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-in-production'
    IS_PRODUCTION = False

    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Fixed-size pool: no overflow connections, bounded wait on checkout
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': int(os.getenv('DB_POOL_SIZE', '10')),
        'max_overflow': 0,
        'pool_timeout': int(os.getenv('DB_POOL_TIMEOUT', '30')),
    }

    # JWT (access and refresh tokens are signed with different secrets)
    JWT_SECRET_KEY = os.getenv('JWT_ACCESS_SECRET')
    JWT_REFRESH_SECRET_KEY = os.getenv('JWT_REFRESH_SECRET')
    JWT_ACCESS_TOKEN_EXPIRES = parse_duration(os.getenv('ACCESS_TOKEN_TTL'), timedelta(minutes=15))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.getenv('REFRESH_TOKEN_TTL_DAYS', '7')))
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_ACCESS_COOKIE_NAME = 'at'
    JWT_REFRESH_COOKIE_NAME = 'rt'
    JWT_ACCESS_COOKIE_PATH = '/'
    JWT_REFRESH_COOKIE_PATH = '/api/auth'
    JWT_SESSION_COOKIE = False
    # The anti-forgery cookie is issued and checked by clinic_api.utils.csrf
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = 'Lax'

    CSRF_COOKIE_NAME = 'csrf'
    CSRF_HEADER_NAME = 'X-CSRF-Token'
    CSRF_PROTECT = _env_flag('CSRF_PROTECT', 'true')

    # CORS
    FRONTEND_ORIGIN = os.getenv('FRONTEND_ORIGIN', 'http://localhost:5173')

    # Uploads (avatars)
    UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'uploads')
    AVATAR_MAX_BYTES = 3 * 1024 * 1024

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Email Configuration (SMTP)
    MAIL_SERVER = os.getenv('SMTP_HOST')
    MAIL_PORT = int(os.getenv('SMTP_PORT', '587'))
    MAIL_USE_SSL = MAIL_PORT == 465  # implicit TLS only on 465, STARTTLS otherwise
    MAIL_USERNAME = os.getenv('SMTP_USER')
    MAIL_PASSWORD = os.getenv('SMTP_PASS')
    MAIL_DEFAULT_SENDER = os.getenv('MAIL_FROM', 'noreply@clinic.com')

    # Stripe invoicing
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY', '')
    STRIPE_AUTO_EMAIL = _env_flag('STRIPE_AUTO_EMAIL', 'true')
    STRIPE_DEFAULT_CURRENCY = os.getenv('STRIPE_DEFAULT_CURRENCY', 'lkr').lower()

    # Clinic display settings
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'LKR').upper()
    CLINIC_NAME = os.getenv('CLINIC_NAME', 'Clinic')
    CLINIC_TZ = os.getenv('CLINIC_TZ', 'Asia/Colombo')
    ORG_DOMAIN = os.getenv('ORG_DOMAIN', 'clinic.local')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or 'sqlite:///clinic.db'
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}
    JWT_SECRET_KEY = Config.JWT_SECRET_KEY or 'dev-access-secret'
    JWT_REFRESH_SECRET_KEY = Config.JWT_REFRESH_SECRET_KEY or 'dev-refresh-secret'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    IS_PRODUCTION = True

    # Cross-site frontend: cookies must be Secure + SameSite=None
    JWT_COOKIE_SECURE = True
    JWT_COOKIE_SAMESITE = 'None'

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = 'test-access-secret'
    JWT_REFRESH_SECRET_KEY = 'test-refresh-secret'
    CSRF_PROTECT = True
    BCRYPT_LOG_ROUNDS = 4
    STRIPE_SECRET_KEY = ''
    MAIL_SERVER = None
    CLINIC_NAME = 'Test Clinic'
    CLINIC_TZ = 'UTC'
    ORG_DOMAIN = 'test.clinic'


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on FLASK_ENV"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
