"""Tests for password login, signed tokens and the admin/cron gates."""

import pytest
from flask import jsonify

from ashram_dashboard.routes.auth import RequestContext, issue_token, require_admin, require_cron


def test_verify_password_issues_token(client):
    response = client.post('/api/verify-password', json={'password': 'test-password'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['token']
    assert body['expires_in'] == 24 * 3600


@pytest.mark.parametrize('payload, status, error', [
    ({}, 400, 'Password is required'),
    ({'password': 'wrong'}, 401, 'Invalid password'),
])
def test_verify_password_rejects(client, payload, status, error):
    response = client.post('/api/verify-password', json=payload)

    assert response.status_code == status
    assert response.get_json() == {'success': False, 'error': error}


def test_verify_password_without_configured_password(client, app):
    app.config['ADMIN_PASSWORD'] = None

    assert client.post('/api/verify-password', json={'password': 'x'}).status_code == 500


def test_issued_token_opens_admin_endpoints(client, seeded, admin_headers):
    token = client.post('/api/verify-password', json={'password': 'test-password'}).get_json()['token']

    assert client.get('/api/bhakts').status_code == 401
    assert client.get('/api/bhakts', headers={'Authorization': 'Bearer nonsense'}).status_code == 401
    assert client.get('/api/bhakts', headers={'Authorization': f'Bearer {token}'}).status_code == 200
    assert client.get('/api/bhakts', headers=admin_headers).status_code == 200


def test_expired_token_is_rejected(client, app, seeded, admin_headers):
    with app.test_request_context():
        token = issue_token()
    app.config['AUTH_TOKEN_MAX_AGE'] = -1

    assert client.get('/api/bhakts', headers={'Authorization': f'Bearer {token}'}).status_code == 401


def test_token_signed_with_other_key_is_rejected(client, app, seeded, admin_headers):
    with app.test_request_context():
        app.config['SECRET_KEY'] = 'another-key'
        token = issue_token()
        app.config['SECRET_KEY'] = 'test-secret-key'

    assert client.get('/api/bhakts', headers={'Authorization': f'Bearer {token}'}).status_code == 401


def test_cron_endpoints_accept_cron_secret_or_admin(client, app, seeded, fake_smtp, admin_headers):
    app.config['CRON_SECRET'] = 'cron-secret'

    assert client.post('/api/send-bhiksha-status').status_code == 401
    assert client.post('/api/send-bhiksha-status',
                       headers={'Authorization': 'Bearer cron-secret'}).status_code == 200
    assert client.post('/api/send-bhiksha-status', headers=admin_headers).status_code == 200


def test_cron_secret_does_not_open_admin_endpoints(client, app, seeded, admin_headers):
    app.config['CRON_SECRET'] = 'cron-secret'

    assert client.get('/api/bhakts', headers={'Authorization': 'Bearer cron-secret'}).status_code == 401


def test_gates_pass_request_context(app):
    seen = []

    @require_admin
    def admin_view(ctx):
        seen.append(ctx)
        return jsonify({'success': True})

    @require_cron
    def cron_view(ctx):
        seen.append(ctx)
        return jsonify({'success': True})

    with app.test_request_context(headers={'X-Request-ID': 'req-1'}):
        admin_view()
        cron_view()

    app.config['CRON_SECRET'] = 'cron-secret'
    with app.test_request_context(headers={'Authorization': 'Bearer cron-secret'}):
        cron_view()

    assert seen[0] == RequestContext('anonymous', 'open', 'req-1')
    assert seen[1] == RequestContext('anonymous', 'open', 'req-1')
    assert seen[2].actor == 'cron' and seen[2].auth_mode == 'cron-secret'
    assert seen[2].request_id


def test_api_responses_carry_cors_headers(client):
    response = client.options('/api/verify-password')

    assert response.status_code == 200
    assert response.headers['Access-Control-Allow-Origin'] == '*'
    assert 'Authorization' in response.headers['Access-Control-Allow-Headers']
