"""Tests for the health endpoints and the JSON index."""


def test_health_reports_database_and_backups(client, app):
    response = client.get('/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'healthy'
    assert 'bhakt' in body['checks']['database']['tables']
    assert body['checks']['backups']['storage'] == 'local'
    assert body['checks']['configuration']['configured']['ADMIN_PASSWORD'] is True


def test_simple_health(client):
    assert client.get('/health/simple').get_json()['status'] == 'ok'


def test_database_health(client):
    body = client.get('/health/database').get_json()

    assert body['status'] == 'healthy'
    assert body['tables'] == 4


def test_version(client):
    assert client.get('/health/version').get_json()['application'] == 'Ashram Dashboard'


def test_index_lists_api_routes(client):
    endpoints = client.get('/').get_json()['endpoints']

    assert '/api/upload-monthly-matrix' in endpoints
    assert '/api/verify-password' in endpoints


def test_security_headers(client):
    response = client.get('/health/simple')

    assert response.headers['X-Frame-Options'] == 'DENY'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
