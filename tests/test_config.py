"""
Configuration parsing and application factory guards.
"""

from datetime import timedelta

import pytest

from clinic_api import create_app
from clinic_api.config import ProductionConfig, parse_duration


class TestParseDuration:

    @pytest.mark.parametrize('value, expected', [
        ('15m', timedelta(minutes=15)),
        ('1h', timedelta(hours=1)),
        ('2d', timedelta(days=2)),
        ('900s', timedelta(seconds=900)),
        ('900', timedelta(seconds=900)),
    ])
    def test_units(self, value, expected):
        assert parse_duration(value, None) == expected

    @pytest.mark.parametrize('value', [None, '', 'soon', '15 minutes'])
    def test_fallback(self, value):
        assert parse_duration(value, timedelta(minutes=15)) == timedelta(minutes=15)


class TestCreateApp:

    def test_production_requires_both_jwt_secrets(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, 'SQLALCHEMY_DATABASE_URI', 'sqlite:///:memory:')
        monkeypatch.setattr(ProductionConfig, 'JWT_SECRET_KEY', 'only-access')
        monkeypatch.setattr(ProductionConfig, 'JWT_REFRESH_SECRET_KEY', None)

        with pytest.raises(RuntimeError):
            create_app('production')

    def test_health_is_public(self, client):
        body = client.get('/api/health').get_json()
        assert body['status'] == 'ok'

    def test_readiness_checks_database(self, client):
        response = client.get('/api/health/ready')
        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/nope')
        assert response.status_code == 404
        assert response.get_json()['success'] is False
