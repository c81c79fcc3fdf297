from fastapi.testclient import TestClient

from heritage_lanka.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OtpExpiredError,
    UpstreamFailureError,
)
from heritage_lanka.main import app

client = TestClient(app)


def test_invalid_auth_login_returns_error(db):
    r = client.post('/auth/login', json={'email': 'missing@example.com', 'password': 'wrongpass'})
    assert r.status_code == 401
    body = r.json()
    assert body['status'] == 'error'
    assert body['error_code'] == 'UNAUTHORIZED'
    assert body['data'] is None


def test_missing_token_is_unauthorized(db):
    r = client.get('/api/traveler/trips')
    assert r.status_code == 401
    assert r.json()['error_code'] == 'UNAUTHORIZED'


def test_request_validation_uses_envelope(db):
    r = client.post('/auth/register', json={'email': 'not-an-email', 'password': 'short'})
    assert r.status_code == 422
    body = r.json()
    assert body['error_code'] == 'VALIDATION_ERROR'
    fields = {e['field'] for e in body['details']['validation_errors']}
    assert 'body.email' in fields


def test_request_id_is_echoed():
    r = client.get('/health', headers={'X-Request-ID': 'req-123'})
    assert r.headers['X-Request-ID'] == 'req-123'


def test_status_codes_per_error_kind():
    assert NotFoundError("Trip", 1).status_code == 404
    assert InvalidTransitionError("PLANNING", "IN_PROGRESS").status_code == 400
    assert ConflictError("Trip already has a guide").status_code == 409
    assert OtpExpiredError("2026-03-10 06:30:00").status_code == 400
    assert UpstreamFailureError("checkout").status_code == 504
    assert UpstreamFailureError("checkout", retryable=False).status_code == 502
