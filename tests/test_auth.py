"""
Cookie session tests: login, refresh rotation, logout and token separation.
"""

from datetime import datetime, timedelta, timezone
import uuid

import jwt as pyjwt
import pytest

from conftest import login, make_user

ACCESS_SECRET = 'test-access-secret'
REFRESH_SECRET = 'test-refresh-secret'


def set_cookie_headers(response):
    return response.headers.getlist('Set-Cookie')


def cookie_header(response, name):
    for header in set_cookie_headers(response):
        if header.startswith(f'{name}='):
            return header
    return None


def forge_token(secret, token_type, sub='1', expires_in=timedelta(minutes=5)):
    now = datetime.now(timezone.utc)
    payload = {
        'sub': sub,
        'type': token_type,
        'fresh': False,
        'jti': str(uuid.uuid4()),
        'iat': now,
        'nbf': now,
        'exp': now + expires_in,
    }
    return pyjwt.encode(payload, secret, algorithm='HS256')


class TestLogin:
    """Credential checks and the cookies issued on success."""

    def test_login_sets_three_cookies(self, client, user):
        response = login(client)

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['email'] == 'staff@clinic.test'
        assert 'password_hash' not in body['data']

        at = cookie_header(response, 'at')
        rt = cookie_header(response, 'rt')
        csrf = cookie_header(response, 'csrf')
        assert 'HttpOnly' in at and 'Path=/;' in at + ';'
        assert 'HttpOnly' in rt and 'Path=/api/auth' in rt
        assert 'HttpOnly' not in csrf and 'Path=/' in csrf
        assert 'Max-Age=900' in at
        assert f'Max-Age={7 * 24 * 3600}' in rt

    def test_tokens_are_signed_with_separate_secrets(self, client, user):
        login(client)
        at = client.get_cookie('at').value
        rt = client.get_cookie('rt', path='/api/auth').value

        access = pyjwt.decode(at, ACCESS_SECRET, algorithms=['HS256'])
        refresh = pyjwt.decode(rt, REFRESH_SECRET, algorithms=['HS256'])
        assert access['sub'] == refresh['sub'] == str(user.id)
        assert access['type'] == 'access'
        assert refresh['type'] == 'refresh'

        with pytest.raises(pyjwt.InvalidSignatureError):
            pyjwt.decode(rt, ACCESS_SECRET, algorithms=['HS256'])
        with pytest.raises(pyjwt.InvalidSignatureError):
            pyjwt.decode(at, REFRESH_SECRET, algorithms=['HS256'])

    def test_csrf_value_is_48_hex_chars(self, client, user):
        login(client)
        value = client.get_cookie('csrf').value
        assert len(value) == 48
        int(value, 16)

    def test_wrong_password_is_401(self, client, user):
        response = client.post('/api/auth/login', json={'email': user.email, 'password': 'nope'})
        assert response.status_code == 401
        assert response.get_json()['success'] is False
        assert set_cookie_headers(response) == []

    def test_missing_credentials_is_401(self, client, user):
        response = client.post('/api/auth/login', json={'email': user.email})
        assert response.status_code == 401

    def test_inactive_account_is_403(self, client, app):
        make_user(email='gone@clinic.test', active=False)
        response = client.post('/api/auth/login', json={'email': 'gone@clinic.test', 'password': 'secret123'})
        assert response.status_code == 403

    def test_login_records_last_login(self, client, user):
        assert user.last_login is None
        login(client)
        assert user.last_login is not None


class TestProtectedRoutes:
    """The access token is accepted from the cookie or a Bearer header."""

    def test_no_token_is_401(self, client, app):
        response = client.get('/api/patients')
        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Unauthorized'}

    def test_cookie_token_is_accepted(self, auth_client):
        assert auth_client.get('/api/patients').status_code == 200

    def test_bearer_token_is_accepted(self, app, user):
        token = forge_token(ACCESS_SECRET, 'access', sub=str(user.id))
        response = app.test_client().get('/api/patients', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 200

    def test_refresh_token_is_not_an_access_token(self, app, user):
        token = forge_token(REFRESH_SECRET, 'refresh', sub=str(user.id))
        response = app.test_client().get('/api/patients', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401

    def test_expired_access_token_is_401(self, app, user):
        token = forge_token(ACCESS_SECRET, 'access', sub=str(user.id), expires_in=timedelta(seconds=-10))
        response = app.test_client().get('/api/patients', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Token expired'


class TestRefresh:
    """Rotation on a valid refresh cookie, and no cookies on failure."""

    def test_refresh_rotates_all_cookies(self, client, user):
        login(client)
        old_csrf = client.get_cookie('csrf').value

        response = client.post('/api/auth/refresh')

        assert response.status_code == 200
        for name in ('at', 'rt', 'csrf'):
            assert cookie_header(response, name) is not None
        assert client.get_cookie('csrf').value != old_csrf

    def test_missing_refresh_cookie_is_401(self, client, app):
        response = client.post('/api/auth/refresh')
        assert response.status_code == 401
        assert set_cookie_headers(response) == []

    def test_refresh_token_signed_with_access_secret_is_401(self, client, user):
        forged = forge_token(ACCESS_SECRET, 'refresh', sub=str(user.id))
        client.set_cookie('rt', forged, path='/api/auth')

        response = client.post('/api/auth/refresh')
        assert response.status_code == 401
        assert set_cookie_headers(response) == []

    def test_access_token_in_refresh_cookie_is_401(self, client, user):
        client.set_cookie('rt', forge_token(ACCESS_SECRET, 'access', sub=str(user.id)), path='/api/auth')
        response = client.post('/api/auth/refresh')
        assert response.status_code == 401
        assert set_cookie_headers(response) == []

    def test_expired_refresh_token_is_401(self, client, user):
        expired = forge_token(REFRESH_SECRET, 'refresh', sub=str(user.id), expires_in=timedelta(seconds=-10))
        client.set_cookie('rt', expired, path='/api/auth')

        response = client.post('/api/auth/refresh')
        assert response.status_code == 401
        assert set_cookie_headers(response) == []

    def test_refresh_for_deactivated_user_is_401(self, client, user, app):
        from clinic_api.extensions import db

        login(client)
        user.is_active = False
        db.session.commit()

        response = client.post('/api/auth/refresh')
        assert response.status_code == 401
        assert cookie_header(response, 'at') is None


class TestLogout:

    def test_logout_clears_cookies_with_matching_attributes(self, client, user):
        login(client)
        response = client.post('/api/auth/logout')

        assert response.status_code == 200
        at = cookie_header(response, 'at')
        rt = cookie_header(response, 'rt')
        csrf = cookie_header(response, 'csrf')
        assert 'Max-Age=0' in at or 'Expires=Thu, 01 Jan 1970' in at
        assert 'Path=/api/auth' in rt
        assert 'Path=/' in csrf and 'HttpOnly' not in csrf
        assert client.get_cookie('at') is None

    def test_logout_without_session_is_200(self, client, app):
        assert client.post('/api/auth/logout').status_code == 200
