import pytest

from auth import COOKIE_NAME, CredentialVerifier, SignedCookieSessions, ServerSideSessions
from models import db, AuthSession, Training, Trainee
from tests.conftest import TEST_PASSWORD, TEST_USERNAME, _login, make_settings


@pytest.mark.parametrize('username,password,expected', [
    (TEST_USERNAME, TEST_PASSWORD, True),
    (TEST_USERNAME, 'wrong', False),
    ('other', TEST_PASSWORD, False),
    ('', '', False),
    (TEST_USERNAME, '', False),
    (None, TEST_PASSWORD, False),
    (TEST_USERNAME.upper(), TEST_PASSWORD, False),
])
def test_credential_verifier(username, password, expected):
    verifier = CredentialVerifier(TEST_USERNAME, TEST_PASSWORD)
    assert verifier.verify(username, password) is expected


def test_unconfigured_credentials_never_match():
    verifier = CredentialVerifier('', '')
    assert verifier.verify('', '') is False


@pytest.mark.parametrize('claims', [
    {'isAuthenticated': True},
    {'isAuthenticated': False},
    {'isAuthenticated': True, 'note': 'ünïcode', 'n': 3},
])
def test_signed_token_round_trip(claims):
    codec = SignedCookieSessions(make_settings())
    assert codec.decode(codec.encode(claims)) == claims


def test_signed_token_rejects_every_single_byte_mutation():
    codec = SignedCookieSessions(make_settings())
    token = codec.encode({'isAuthenticated': True})
    for i, ch in enumerate(token):
        replacement = 'A' if ch != 'A' else 'B'
        mutated = token[:i] + replacement + token[i + 1:]
        assert codec.decode(mutated) is None, f'mutation at {i} was accepted'


def test_signed_token_rejects_other_key_and_garbage():
    token = SignedCookieSessions(make_settings()).encode({'isAuthenticated': True})
    other = SignedCookieSessions(make_settings(secret_key='another-key'))
    assert other.decode(token) is None
    assert other.decode('') is None
    assert other.decode('no-dots-here') is None
    assert other.decode(None) is None


def test_signed_token_expires():
    token = SignedCookieSessions(make_settings()).encode({'isAuthenticated': True})
    expired = SignedCookieSessions(make_settings(session_max_age=-1))
    assert expired.decode(token) is None


def test_issue_sets_cookie_attributes():
    cookie = SignedCookieSessions(make_settings()).issue()
    assert cookie.name == COOKIE_NAME
    assert cookie.max_age == 7 * 24 * 60 * 60
    assert cookie.httponly is True
    assert cookie.samesite == 'Strict'
    assert cookie.secure is False
    prod = SignedCookieSessions(make_settings(environment='production')).issue()
    assert prod.secure is True


def test_clear_expires_immediately():
    cookie = SignedCookieSessions(make_settings()).clear()
    assert cookie.value == ''
    assert cookie.max_age == 0


def test_login_logout_flow(client):
    assert client.get('/api/auth/status').get_json() == {'isAuthenticated': False}
    resp = _login(client)
    assert resp.status_code == 200
    assert resp.get_json() == {'success': True}
    set_cookie = resp.headers.get('Set-Cookie')
    assert COOKIE_NAME in set_cookie
    assert 'HttpOnly' in set_cookie
    assert 'SameSite=Strict' in set_cookie
    assert 'Max-Age=604800' in set_cookie
    assert client.get('/api/auth/status').get_json() == {'isAuthenticated': True}

    out = client.post('/api/logout')
    assert out.status_code == 200
    assert client.get('/api/auth/status').get_json() == {'isAuthenticated': False}


def test_login_rejects_bad_credentials(client):
    resp = _login(client, password='nope')
    assert resp.status_code == 401
    assert resp.get_json()['message'] == 'Invalid credentials'
    assert 'Set-Cookie' not in resp.headers
    assert client.post('/api/login', json={}).status_code == 401


def test_tampered_cookie_is_unauthorized(client):
    _login(client)
    cookie = client.get_cookie(COOKIE_NAME)
    tampered = cookie.value[:-3] + ('xyz' if not cookie.value.endswith('xyz') else 'abc')
    client.set_cookie(COOKIE_NAME, tampered)
    assert client.get('/api/trainings').status_code == 401


ADMIN_ENDPOINTS = [
    ('get', '/api/trainings', None),
    ('post', '/api/trainings', {'name': 'X', 'date': '2025-01-01'}),
    ('get', '/api/trainings/{training}', None),
    ('patch', '/api/trainings/{training}', {'name': 'Renamed'}),
    ('delete', '/api/trainings/{training}', None),
    ('get', '/api/trainings/{training}/trainees', None),
    ('get', '/api/trainees', None),
    ('post', '/api/trainees', {'name': 'A', 'surname': 'B', 'email': 'new@example.com',
                               'phoneNumber': '1', 'trainingId': '{training}'}),
    ('get', '/api/trainees/{trainee}', None),
    ('patch', '/api/trainees/{trainee}', {'status': 'passed'}),
    ('delete', '/api/trainees/{trainee}', None),
    ('get', '/api/trainees/{trainee}/certificate', None),
    ('post', '/api/trainees/upload', None),
    ('get', '/api/stats', None),
    ('post', '/api/logout', None),
]


@pytest.mark.parametrize('method,path,body', ADMIN_ENDPOINTS)
def test_admin_endpoints_require_session(app, client, seed, method, path, body):
    training_id = seed.training()
    trainee_id = seed.trainee(training_id)
    url = path.format(training=training_id, trainee=trainee_id)
    if isinstance(body, dict):
        body = {k: (v.format(training=training_id) if isinstance(v, str) else v) for k, v in body.items()}
    resp = getattr(client, method)(url, json=body) if body else getattr(client, method)(url)
    assert resp.status_code == 401
    assert resp.get_json() == {'message': 'Unauthorized'}
    with app.app_context():
        assert db.session.query(Training).count() == 1
        trainee = db.session.get(Trainee, trainee_id)
        assert trainee is not None
        assert trainee.status == 'pending'
        assert trainee.certificate_id is None
        assert db.session.query(Trainee).count() == 1


def test_server_side_sessions(app):
    settings = make_settings(session_backend='server')
    with app.app_context():
        sessions = ServerSideSessions(settings)
        cookie = sessions.issue()
        assert db.session.get(AuthSession, cookie.value) is not None
        assert sessions.check({COOKIE_NAME: cookie.value}) is True
        assert sessions.check({COOKIE_NAME: 'unknown-sid'}) is False
        assert sessions.check({}) is False
        cleared = sessions.clear({COOKIE_NAME: cookie.value})
        assert cleared.max_age == 0
        assert db.session.get(AuthSession, cookie.value) is None
        assert sessions.check({COOKIE_NAME: cookie.value}) is False


def test_server_side_session_expiry(app):
    with app.app_context():
        sessions = ServerSideSessions(make_settings(session_backend='server', session_max_age=-10))
        cookie = sessions.issue()
        assert sessions.check({COOKIE_NAME: cookie.value}) is False
        assert db.session.get(AuthSession, cookie.value) is None


@pytest.mark.parametrize('settings', [make_settings(session_backend='server')])
def test_login_flow_with_server_sessions(app, client, settings):
    resp = _login(client)
    assert resp.status_code == 200
    sid = client.get_cookie(COOKIE_NAME).value
    # cookie holds only the opaque id, not signed claims
    assert '.' not in sid
    assert client.get('/api/trainings').status_code == 200
    client.post('/api/logout')
    assert client.get('/api/trainings').status_code == 401
    with app.app_context():
        assert db.session.query(AuthSession).count() == 0


@pytest.mark.parametrize('body', [
    {'username': 123, 'password': 'x'},
    {'username': None, 'password': None},
    {'username': TEST_USERNAME, 'password': ['list']},
])
def test_login_with_malformed_fields_is_rejected(client, body):
    resp = client.post('/api/login', json=body)
    assert resp.status_code == 401
    assert resp.get_json() == {'message': 'Invalid credentials'}
    assert 'Set-Cookie' not in resp.headers


def test_issuing_a_session_purges_expired_rows(app):
    with app.app_context():
        stale = ServerSideSessions(make_settings(session_backend='server', session_max_age=-10)).issue()
        fresh = ServerSideSessions(make_settings(session_backend='server')).issue()
        assert db.session.query(AuthSession).filter_by(sid=stale.value).count() == 0
        assert db.session.query(AuthSession).filter_by(sid=fresh.value).count() == 1
