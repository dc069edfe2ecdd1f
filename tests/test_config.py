from datetime import timedelta

import pytest

from app import create_app
from app.config import ProductionConfig, Settings, TestingConfig, parse_duration


@pytest.mark.parametrize('value,expected', [
    ('7d', timedelta(days=7)),
    ('12h', timedelta(hours=12)),
    ('30m', timedelta(minutes=30)),
    ('45', timedelta(seconds=45)),
    ('', timedelta(days=7)),
])
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_duration_rejects_garbage():
    with pytest.raises(ValueError):
        parse_duration('soon')


def test_settings_from_config(app):
    settings = app.extensions['settings']
    assert isinstance(settings, Settings)
    assert settings.env == 'testing'
    assert settings.email_queue == 'emailQueue'
    assert settings.cookie_max_age == 7 * 24 * 60 * 60
    targets = {route.prefix: route.target for route in settings.proxy_routes}
    assert targets['/api/appointments'] == 'http://clinic.test'
    assert targets['/api/files'] == 'http://files.test'

    with pytest.raises(AttributeError):
        settings.port = 1


def test_production_refuses_default_secrets(monkeypatch):
    monkeypatch.setattr(ProductionConfig, 'JWT_SECRET_KEY', TestingConfig.JWT_SECRET_KEY)
    monkeypatch.setattr(ProductionConfig, 'COOKIE_SECRET', 'clinic-cookie-secret-for-development')
    with pytest.raises(ValueError, match='COOKIE_SECRET'):
        create_app('production')


def test_production_requires_mail_transport(monkeypatch):
    monkeypatch.setattr(ProductionConfig, 'JWT_SECRET_KEY', TestingConfig.JWT_SECRET_KEY)
    monkeypatch.setattr(ProductionConfig, 'COOKIE_SECRET', 'production-cookie-secret')
    monkeypatch.setattr(ProductionConfig, 'MAIL_TRANSPORT', None)
    with pytest.raises(ValueError, match='MAIL_TRANSPORT'):
        create_app('production')


def test_production_resend_requires_api_key(monkeypatch):
    monkeypatch.setattr(ProductionConfig, 'JWT_SECRET_KEY', TestingConfig.JWT_SECRET_KEY)
    monkeypatch.setattr(ProductionConfig, 'COOKIE_SECRET', 'production-cookie-secret')
    monkeypatch.setattr(ProductionConfig, 'MAIL_TRANSPORT', 'resend')
    monkeypatch.setattr(ProductionConfig, 'RESEND_API_KEY', None)
    with pytest.raises(ValueError, match='RESEND_API_KEY'):
        create_app('production')
