"""Shared pytest fixtures."""

import pytest

from clinic_api import create_app
from clinic_api.extensions import db
from clinic_api.models import User


class FakeMailer:
    """Records messages instead of talking to an SMTP server."""

    def __init__(self, configured=True, error=None):
        self.configured = configured
        self.error = error
        self.sent = []

    def init_app(self, app):
        app.extensions['clinic_mailer'] = self

    def send(self, to_email, msg):
        if self.error:
            raise self.error
        self.sent.append((to_email, msg))
        return True


class FakeBilling:
    """Stands in for StripeBilling; returns a canned finalized invoice."""

    def __init__(self, configured=True, error=None):
        self.configured = configured
        self.error = error
        self.calls = []

    def init_app(self, app):
        app.extensions['clinic_billing'] = self

    def invoice_appointment(self, appointment, items=None):
        if self.error:
            raise self.error
        self.calls.append((appointment.id, items))
        return {
            'invoice_id': f'in_{appointment.id}',
            'status': 'open',
            'hosted_url': f'https://invoice.stripe.test/i/{appointment.id}',
            'pdf_url': f'https://invoice.stripe.test/i/{appointment.id}/pdf',
            'customer_id': 'cus_test',
        }


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def app(mailer, billing, tmp_path):
    app = create_app('testing', mailer=mailer, billing=billing)
    app.config['UPLOAD_DIR'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email='staff@clinic.test', password='secret123', role='staff', name='Staff User', active=True):
    user = User(email=email, name=name, role=role, is_active=active)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def login(client, email='staff@clinic.test', password='secret123'):
    """Log in and mirror the csrf cookie into the X-CSRF-Token header."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    csrf = client.get_cookie('csrf')
    if csrf is not None:
        client.environ_base['HTTP_X_CSRF_TOKEN'] = csrf.value
    return response


@pytest.fixture
def user(app):
    return make_user()


@pytest.fixture
def admin(app):
    return make_user(email='admin@clinic.test', role='admin', name='Admin User')


@pytest.fixture
def auth_client(client, user):
    response = login(client)
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(app, admin):
    client = app.test_client()
    response = login(client, email='admin@clinic.test')
    assert response.status_code == 200
    return client


@pytest.fixture
def patient(auth_client):
    response = auth_client.post('/api/patients', json={
        'name': 'Jane Doe',
        'email': 'jane@example.com',
        'phone': '0771234567',
        'gender': 'female',
    })
    assert response.status_code == 201
    return response.get_json()['data']


@pytest.fixture
def patient_without_email(auth_client):
    response = auth_client.post('/api/patients', json={'name': 'John Smith', 'phone': '0710000000'})
    assert response.status_code == 201
    return response.get_json()['data']
