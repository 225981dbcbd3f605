"""
Cookie-carried session: short-lived access token, path-scoped refresh token
and a readable anti-forgery value.

Access and refresh tokens are signed with different secrets. The key loaders
below pick the secret from the token kind, so a refresh token can never be
verified as an access token or the other way around.
"""
import logging
from typing import NamedTuple

from flask import current_app, jsonify
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    set_access_cookies,
    set_refresh_cookies,
    unset_jwt_cookies,
)

from clinic_api.utils.csrf import generate_csrf_token

logger = logging.getLogger(__name__)


class TokenSubject(NamedTuple):
    user_id: int
    token_type: str  # 'access' or 'refresh'


def _access_secret():
    return current_app.config['JWT_SECRET_KEY']


def _refresh_secret():
    return current_app.config['JWT_REFRESH_SECRET_KEY']


def _unauthorized(message):
    return jsonify({'success': False, 'error': message}), 401


def init_jwt_callbacks(jwt):
    """Register identity, signing key and error callbacks on the JWTManager."""

    @jwt.user_identity_loader
    def subject_claim(subject):
        # "sub" must be a string
        if isinstance(subject, TokenSubject):
            return str(subject.user_id)
        return str(subject)

    @jwt.encode_key_loader
    def signing_key(subject):
        if isinstance(subject, TokenSubject) and subject.token_type == 'refresh':
            return _refresh_secret()
        return _access_secret()

    @jwt.decode_key_loader
    def verification_key(jwt_header, jwt_payload):
        if jwt_payload.get('type') == 'refresh':
            return _refresh_secret()
        return _access_secret()

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _unauthorized('Unauthorized')

    @jwt.invalid_token_loader
    def invalid_token(reason):
        logger.info(f"Rejected token: {reason}")
        return _unauthorized('Unauthorized')

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _unauthorized('Token expired')


def _cookie_kwargs():
    config = current_app.config
    return {
        'secure': config['JWT_COOKIE_SECURE'],
        'samesite': config['JWT_COOKIE_SAMESITE'],
        'path': '/',
    }


def issue_session(response, user_id):
    """
    Mint a fresh access/refresh/csrf triple for ``user_id`` and set all three
    cookies on ``response``. Used by both login and refresh (rotation).
    """
    config = current_app.config
    access_ttl = config['JWT_ACCESS_TOKEN_EXPIRES']
    refresh_ttl = config['JWT_REFRESH_TOKEN_EXPIRES']

    access_token = create_access_token(identity=TokenSubject(user_id, 'access'))
    refresh_token = create_refresh_token(identity=TokenSubject(user_id, 'refresh'))
    csrf_token = generate_csrf_token()

    set_access_cookies(response, access_token, max_age=int(access_ttl.total_seconds()))
    set_refresh_cookies(response, refresh_token, max_age=int(refresh_ttl.total_seconds()))
    response.set_cookie(
        config['CSRF_COOKIE_NAME'],
        csrf_token,
        max_age=int(refresh_ttl.total_seconds()),
        httponly=False,
        **_cookie_kwargs(),
    )
    return response


def clear_session(response):
    """Expire all three cookies with the attributes they were set with."""
    unset_jwt_cookies(response)
    response.delete_cookie(
        current_app.config['CSRF_COOKIE_NAME'],
        httponly=False,
        **_cookie_kwargs(),
    )
    return response
