from datetime import datetime, timedelta, timezone

import jwt
import pytest

from crates_backend.auth_service import RESET_ACKNOWLEDGEMENT, UNVERIFIED_ACCOUNT
from crates_backend.auth_utils import (
    decode_token,
    generate_access_token,
    generate_verification_token,
    hash_password,
    verify_password,
)
from tests.conftest import DEFAULT_PASSWORD, TEST_SECRET


pytestmark = pytest.mark.unit


# ----------------------------------------------------------------------
# auth_utils
# ----------------------------------------------------------------------

def test_password_hash_round_trip():
    hashed = hash_password('correct horse')
    assert hashed != 'correct horse'
    assert verify_password('correct horse', hashed)
    assert not verify_password('wrong horse', hashed)


def test_verify_password_rejects_malformed_hash():
    assert verify_password('anything', 'not-a-bcrypt-hash') is False


def test_token_type_is_enforced():
    token = generate_verification_token('a@b.co', TEST_SECRET)
    assert decode_token(token, TEST_SECRET, expected_type='verify')['email'] == 'a@b.co'
    with pytest.raises(ValueError):
        decode_token(token, TEST_SECRET, expected_type='access')


def test_access_token_carries_user_identity():
    token = generate_access_token({'id': 'abc', 'email': 'a@b.co', 'name': 'A'}, TEST_SECRET)
    payload = decode_token(token, TEST_SECRET, expected_type='access')
    assert payload['user_id'] == 'abc'
    assert payload['exp'] - payload['iat'] == 7 * 24 * 3600


# ----------------------------------------------------------------------
# Registration
# ----------------------------------------------------------------------

def test_register_creates_unverified_user_and_sends_email(register, users, email_service):
    response = register()

    assert response.status_code == 201
    body = response.get_json()
    assert body['userId'] in users.rows
    assert users.rows[body['userId']]['is_verified'] is False
    assert email_service.verification_emails[0][0] == 'listener@example.com'


def test_register_duplicate_email_is_case_insensitive(register):
    assert register('Dup@Example.com').status_code == 201

    response = register('dup@example.com')
    assert response.status_code == 409
    assert response.get_json()['error'] == 'User with this email already exists'


@pytest.mark.parametrize('payload, message', [
    ({'email': 'a@b.co', 'password': DEFAULT_PASSWORD}, 'All fields are required'),
    ({'email': 'a@b.co', 'password': 'short', 'name': 'A'}, 'Password must be at least 8 characters long'),
    ({'email': 'not-an-email', 'password': DEFAULT_PASSWORD, 'name': 'A'}, 'Please enter a valid email address'),
])
def test_register_validation(client, payload, message):
    response = client.post('/auth/register', json=payload)
    assert response.status_code == 400
    assert response.get_json()['error'] == message


def test_register_succeeds_when_email_delivery_raises(register, email_service):
    def _boom(email, token):
        raise RuntimeError('smtp down')

    email_service.send_verification_email = _boom
    assert register().status_code == 201


# ----------------------------------------------------------------------
# Email verification
# ----------------------------------------------------------------------

def test_verify_email_then_replay_is_rejected(client, register, email_service):
    register()
    token = email_service.last_verification_token('listener@example.com')

    assert client.get(f'/auth/verify-email?token={token}').status_code == 200

    replay = client.get(f'/auth/verify-email?token={token}')
    assert replay.status_code == 400
    assert replay.get_json()['error'] == 'User is already verified'


def test_verify_email_requires_token(client):
    response = client.get('/auth/verify-email')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Verification token is required'


def test_verify_email_rejects_expired_token(client, register):
    register()
    now = datetime.now(timezone.utc)
    expired = jwt.encode(
        {'email': 'listener@example.com', 'type': 'verify', 'iat': now - timedelta(days=2),
         'exp': now - timedelta(days=1)},
        TEST_SECRET, algorithm='HS256'
    )

    response = client.get(f'/auth/verify-email?token={expired}')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Verification token has expired'


def test_verify_email_rejects_superseded_token(client, register, users, email_service):
    user_id = register().get_json()['userId']
    mailed = email_service.last_verification_token('listener@example.com')
    users.set_verification_token(user_id, 'a-newer-token')

    response = client.get(f'/auth/verify-email?token={mailed}')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Verification token does not match'


def test_resend_verification(client, register, email_service):
    register()

    response = client.post('/auth/resend-verification', json={'email': 'listener@example.com'})
    assert response.status_code == 200
    assert len(email_service.verification_emails) == 2

    unknown = client.post('/auth/resend-verification', json={'email': 'nobody@example.com'})
    assert unknown.status_code == 404


def test_resend_verification_for_verified_user(client, auth_headers):
    response = client.post('/auth/resend-verification', json={'email': 'listener@example.com'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'User is already verified'


def test_resend_verification_reports_delivery_failure_when_configured(client, register, email_service):
    register()
    email_service.configured = True
    email_service.succeed = False

    response = client.post('/auth/resend-verification', json={'email': 'listener@example.com'})
    assert response.status_code == 500


# ----------------------------------------------------------------------
# Login
# ----------------------------------------------------------------------

def test_login_unverified_account_is_refused_before_password_check(client, register):
    register()

    for password in (DEFAULT_PASSWORD, 'wrong-password'):
        response = client.post('/auth/login', json={'email': 'listener@example.com', 'password': password})
        assert response.status_code == 401
        assert response.get_json()['error'] == UNVERIFIED_ACCOUNT


def test_login_errors_do_not_reveal_which_part_was_wrong(client, auth_headers):
    wrong_password = client.post('/auth/login', json={'email': 'listener@example.com', 'password': 'nope-nope'})
    unknown_email = client.post('/auth/login', json={'email': 'ghost@example.com', 'password': 'nope-nope'})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.get_json() == unknown_email.get_json() == {'error': 'Invalid email or password'}


def test_login_returns_token_and_public_user(client, register, email_service):
    register('Mixed@Example.com')
    token = email_service.last_verification_token('mixed@example.com')
    client.get(f'/auth/verify-email?token={token}')

    response = client.post('/auth/login', json={'email': 'MIXED@example.com', 'password': DEFAULT_PASSWORD})

    assert response.status_code == 200
    body = response.get_json()
    assert body['user']['email'] == 'mixed@example.com'
    assert body['user']['isVerified'] is True
    assert 'password_hash' not in body['user']
    assert decode_token(body['token'], TEST_SECRET)['type'] == 'access'


def test_me_requires_bearer_token(client, auth_headers):
    assert client.get('/auth/me', headers=auth_headers).get_json()['user']['name'] == 'Listener'

    missing = client.get('/auth/me')
    assert missing.status_code == 401
    assert missing.get_json()['error'] == 'No authorization header'

    malformed = client.get('/auth/me', headers={'Authorization': 'Token abc'})
    assert malformed.status_code == 401
    assert malformed.get_json()['error'] == 'Invalid authorization header format'

    forged = client.get('/auth/me', headers={'Authorization': 'Bearer not.a.jwt'})
    assert forged.status_code == 401


# ----------------------------------------------------------------------
# Password reset
# ----------------------------------------------------------------------

def test_forgot_password_same_answer_for_unknown_email(client, auth_headers, email_service):
    known = client.post('/auth/forgot-password', json={'email': 'listener@example.com'})
    unknown = client.post('/auth/forgot-password', json={'email': 'ghost@example.com'})

    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json() == {'message': RESET_ACKNOWLEDGEMENT}
    assert [e for e, _ in email_service.reset_emails] == ['listener@example.com']


def test_reset_token_is_single_use(client, auth_headers, email_service):
    client.post('/auth/forgot-password', json={'email': 'listener@example.com'})
    token = email_service.last_reset_token('listener@example.com')

    first = client.post('/auth/reset-password', json={'token': token, 'password': 'brand-new-pass'})
    assert first.status_code == 200

    second = client.post('/auth/reset-password', json={'token': token, 'password': 'another-pass'})
    assert second.status_code == 400
    assert second.get_json()['error'] == 'Invalid or expired reset token'

    old = client.post('/auth/login', json={'email': 'listener@example.com', 'password': DEFAULT_PASSWORD})
    new = client.post('/auth/login', json={'email': 'listener@example.com', 'password': 'brand-new-pass'})
    assert old.status_code == 401
    assert new.status_code == 200


def test_reset_rejects_expired_stored_token(client, auth_headers, users, email_service):
    client.post('/auth/forgot-password', json={'email': 'listener@example.com'})
    token = email_service.last_reset_token('listener@example.com')

    user = users.get_by_email('listener@example.com')
    users.set_reset_token(user['id'], token, datetime.now(timezone.utc) - timedelta(minutes=1))

    response = client.post('/auth/reset-password', json={'token': token, 'password': 'brand-new-pass'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid or expired reset token'


def test_reset_rejects_expired_jwt(client, auth_headers, users):
    user = users.get_by_email('listener@example.com')
    now = datetime.now(timezone.utc)
    expired = jwt.encode(
        {'user_id': user['id'], 'type': 'reset', 'iat': now - timedelta(hours=2),
         'exp': now - timedelta(hours=1)},
        TEST_SECRET, algorithm='HS256'
    )

    response = client.post('/auth/reset-password', json={'token': expired, 'password': 'brand-new-pass'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid or expired reset token'


def test_reset_password_validates_length(client):
    response = client.post('/auth/reset-password', json={'token': 'x', 'password': 'short'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Password must be at least 8 characters long'


# ----------------------------------------------------------------------
# Rate limits
# ----------------------------------------------------------------------

def test_sixth_registration_attempt_is_rate_limited(register, users):
    for n in range(5):
        assert register(f'listener{n}@example.com').status_code == 201

    response = register('listener5@example.com')

    assert response.status_code == 429
    assert response.get_json()['error'] == 'Too many registration attempts, please try again later.'
    assert len(users.rows) == 5


def test_forgot_password_shares_the_registration_budget(client, register, email_service):
    for n in range(5):
        register(f'listener{n}@example.com')

    response = client.post('/auth/forgot-password', json={'email': 'listener0@example.com'})

    assert response.status_code == 429
    assert email_service.reset_emails == []


def test_eleventh_login_attempt_is_rate_limited(client):
    credentials = {'email': 'ghost@example.com', 'password': 'nope-nope'}
    for _ in range(10):
        assert client.post('/auth/login', json=credentials).status_code == 401

    response = client.post('/auth/login', json=credentials)

    assert response.status_code == 429
    assert response.get_json()['error'] == 'Too many login attempts, please try again later.'


def test_rate_limits_can_be_switched_off(settings, request):
    settings.rate_limit_enabled = False
    client = request.getfixturevalue('client')

    for n in range(6):
        response = client.post('/auth/register', json={
            'email': f'listener{n}@example.com', 'password': DEFAULT_PASSWORD, 'name': 'Listener'
        })
        assert response.status_code == 201
