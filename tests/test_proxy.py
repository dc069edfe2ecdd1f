import io

import pytest
import requests
from flask import request
from requests.structures import CaseInsensitiveDict
from urllib3.response import HTTPResponse

from app.config import ProxyRoute
from app.errors import UpstreamUnavailableError
from app.services.proxy import ProxyRouter


def make_response(status=200, body=b'{"ok": true}', headers=None):
    response = requests.Response()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers or {'Content-Type': 'application/json'})
    response.raw = HTTPResponse(body=io.BytesIO(body), status=status, preload_content=False)
    return response


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def upstream(app, monkeypatch):
    session = FakeSession(make_response())
    monkeypatch.setattr(app.extensions['proxy_router'], 'session', session)
    return session


def test_match_prefers_longest_prefix():
    router = ProxyRouter([
        ProxyRoute('/api', 'clinic', 'http://a'),
        ProxyRoute('/api/files', 'files', 'http://b'),
    ])
    assert router.match('/api/files/report.pdf').target == 'http://b'
    assert router.match('/api/patients').target == 'http://a'
    assert router.match('/api/filesystem').target == 'http://a'
    assert router.match('/other') is None


def test_proxy_requires_auth(client, upstream):
    response = client.get('/api/patients')
    assert response.status_code == 401
    assert response.get_json()['code'] == 'NO_TOKEN'
    assert upstream.calls == []


def test_proxy_passes_request_through(client, users, auth_headers, upstream):
    upstream.response = make_response(201, b'{"id": 7}', {'Content-Type': 'application/json', 'X-Upstream': 'yes'})
    headers = dict(auth_headers('receptionist'), **{'X-Forwarded-For': '10.0.0.1'})

    response = client.post('/api/patients/search?q=jane', json={'name': 'Jane'}, headers=headers)

    assert response.status_code == 201
    assert response.get_data() == b'{"id": 7}'
    assert response.headers['X-Upstream'] == 'yes'

    call = upstream.calls[0]
    assert call['method'] == 'POST'
    assert call['url'] == 'http://clinic.test/api/patients/search?q=jane'
    assert call['data'] == b'{"name": "Jane"}'
    assert call['headers']['Authorization'] == headers['Authorization']
    assert call['headers']['X-Forwarded-For'] == '10.0.0.1, 127.0.0.1'
    assert 'Host' not in call['headers']
    assert call['allow_redirects'] is False
    assert call['stream'] is True


def test_files_prefix_goes_to_files_service(client, users, auth_headers, upstream):
    client.get('/api/files/scan.png', headers=auth_headers('doctor'))
    assert upstream.calls[0]['url'] == 'http://files.test/api/files/scan.png'


def test_downstream_error_status_is_passed_through(client, users, auth_headers, upstream):
    upstream.response = make_response(404, b'{"error": "missing"}')
    response = client.get('/api/prescriptions/99', headers=auth_headers('pharmacist'))
    assert response.status_code == 404
    assert response.get_json() == {'error': 'missing'}


def test_unavailable_downstream_returns_503_and_gateway_keeps_serving(client, users, auth_headers, upstream):
    upstream.error = requests.ConnectionError('connection refused')

    response = client.get('/api/patients', headers=auth_headers('receptionist'))
    assert response.status_code == 503
    assert response.get_json() == {
        'success': False,
        'error': 'Clinic service unavailable',
        'code': 'SERVICE_UNAVAILABLE',
    }

    assert client.get('/api/health').status_code == 200
    assert client.get('/api/auth/me', headers=auth_headers('receptionist')).status_code == 200


def test_downstream_timeout_returns_503(client, users, auth_headers, upstream):
    upstream.error = requests.Timeout('read timed out')
    response = client.get('/api/files/x', headers=auth_headers('doctor'))
    assert response.status_code == 503
    assert response.get_json()['error'] == 'Files service unavailable'


def test_forward_without_route_is_an_error(app):
    router = ProxyRouter([ProxyRoute('/api/patients', 'clinic', 'http://a')])
    with app.test_request_context('/elsewhere'):
        with pytest.raises(ValueError):
            router.forward(request)


def test_appointment_reads_are_proxied(client, users, auth_headers, upstream):
    client.get('/api/appointments/APT1000', headers=auth_headers('doctor'))
    assert upstream.calls[0]['method'] == 'GET'
    assert upstream.calls[0]['url'] == 'http://clinic.test/api/appointments/APT1000'


def test_unknown_route_is_json_404(client):
    response = client.get('/api/unknown')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': 'Route not found', 'code': 'NOT_FOUND'}


def test_health_payload(client):
    body = client.get('/api/health').get_json()
    assert body['status'] == 'OK'
    assert body['service'] == 'API Gateway'
    assert body['version'] == '1.0.0'
    assert body['timestamp']


def test_security_headers(client):
    response = client.get('/health')
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'DENY'


def test_router_raises_upstream_unavailable(app):
    router = ProxyRouter(
        [ProxyRoute('/api/patients', 'clinic', 'http://a')],
        session=FakeSession(error=requests.ConnectionError('refused')),
    )
    with app.test_request_context('/api/patients', method='DELETE'):
        with pytest.raises(UpstreamUnavailableError) as exc:
            router.forward(request)
    assert exc.value.status == 503
