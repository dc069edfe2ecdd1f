from app.routes import health


def test_ready_when_database_and_broker_are_up(client, monkeypatch):
    monkeypatch.setattr(health, '_broker_status', lambda: 'connected')
    response = client.get('/health/ready')
    assert response.status_code == 200
    assert response.get_json()['database'] == 'connected'


def test_not_ready_without_broker(client, monkeypatch):
    monkeypatch.setattr(health, '_broker_status', lambda: 'error: connection refused')
    response = client.get('/health/ready')
    assert response.status_code == 503
    assert response.get_json()['status'] == 'not_ready'


def test_liveness(client):
    assert client.get('/health/live').get_json()['status'] == 'alive'


def test_ping_alias(client):
    assert client.get('/health/ping').get_json()['service'] == 'API Gateway'
