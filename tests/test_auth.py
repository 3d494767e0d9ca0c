import pytest

from bannerscout.web.auth import LoginRateLimiter
from bannerscout.web.server import create_app

from tests.conftest import FakeVerifier


@pytest.fixture
def client(app_settings, make_resolver):
    app = create_app(settings=app_settings, resolver=make_resolver(FakeVerifier({})))
    app.config['TESTING'] = True
    return app.test_client()


def test_login_opens_session(client):
    response = client.post('/auth/login', json={'username': 'admin', 'password': 'secret'})

    assert response.status_code == 200
    assert response.get_json()['user'] == {'username': 'admin'}
    assert client.get('/auth/status').get_json()['authenticated'] is True
    assert client.get('/api/cache/stats').status_code == 200


def test_login_with_form_data(client):
    response = client.post('/auth/login', data={'username': 'admin', 'password': 'secret'})
    assert response.status_code == 200


def test_bad_password_is_rejected(client):
    response = client.post('/auth/login', json={'username': 'admin', 'password': 'wrong'})

    assert response.status_code == 401
    assert client.get('/auth/status').get_json()['authenticated'] is False


def test_missing_fields(client):
    assert client.post('/auth/login', json={'username': 'admin'}).status_code == 400


def test_login_disabled_without_hash(app_settings, make_resolver):
    settings = app_settings.model_copy(update={'auth_password_hash': ''})
    client = create_app(settings=settings, resolver=make_resolver(FakeVerifier({}))).test_client()

    assert client.post('/auth/login', json={'username': 'admin', 'password': 'x'}).status_code == 500


def test_repeated_failures_are_rate_limited(client, app_settings):
    for _ in range(app_settings.login_max_attempts):
        client.post('/auth/login', json={'username': 'admin', 'password': 'wrong'})

    response = client.post('/auth/login', json={'username': 'admin', 'password': 'secret'})

    assert response.status_code == 429


def test_logout_closes_session(client):
    client.post('/auth/login', json={'username': 'admin', 'password': 'secret'})

    assert client.post('/auth/logout').get_json()['success'] is True
    assert client.get('/api/cache/stats').status_code == 401


def test_rate_limiter_window_expires():
    now = [0.0]
    limiter = LoginRateLimiter(max_attempts=2, window_seconds=60, clock=lambda: now[0])

    limiter.record_failure("1.2.3.4")
    assert limiter.retry_after("1.2.3.4") is None
    limiter.record_failure("1.2.3.4")
    assert limiter.retry_after("1.2.3.4") == 61

    now[0] = 61.0
    assert limiter.retry_after("1.2.3.4") is None


def test_rate_limiter_reset():
    limiter = LoginRateLimiter(max_attempts=1, window_seconds=60)
    limiter.record_failure("a")
    assert limiter.retry_after("a") is not None
    limiter.reset("a")
    assert limiter.retry_after("a") is None


def test_rate_limiter_forgets_stale_clients():
    now = [0.0]
    limiter = LoginRateLimiter(max_attempts=5, window_seconds=60, clock=lambda: now[0])
    for client in ("a", "b", "c"):
        limiter.record_failure(client)

    now[0] = 120.0
    limiter.record_failure("d")

    assert list(limiter._failures) == ["d"]
