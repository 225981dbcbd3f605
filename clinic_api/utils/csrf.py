"""
Double-submit anti-forgery check.

The login/refresh responses drop a readable ``csrf`` cookie; the frontend
mirrors it into the ``X-CSRF-Token`` header on every state-changing request.
"""
import hmac
import logging
import secrets

from flask import current_app, request

from clinic_api.errors import CsrfError

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({'GET', 'HEAD', 'OPTIONS'})

# Blueprints that run before a csrf cookie exists (or are public)
EXEMPT_BLUEPRINTS = frozenset({'auth', 'health', 'uploads'})


def generate_csrf_token():
    return secrets.token_hex(24)


def check_anti_forgery():
    """Raise CsrfError unless header and cookie carry the same token."""
    if request.method in SAFE_METHODS:
        return
    cookie_value = request.cookies.get(current_app.config['CSRF_COOKIE_NAME'])
    header_value = request.headers.get(current_app.config['CSRF_HEADER_NAME'])
    if not cookie_value or not header_value or not hmac.compare_digest(cookie_value, header_value):
        logger.warning(f"CSRF check failed for {request.method} {request.path}")
        raise CsrfError()


def init_csrf(app):
    """Install the anti-forgery gate in front of every protected blueprint."""

    @app.before_request
    def csrf_protect():
        if not current_app.config.get('CSRF_PROTECT', True):
            return None
        if request.blueprint is None or request.blueprint in EXEMPT_BLUEPRINTS:
            return None
        check_anti_forgery()
        return None
