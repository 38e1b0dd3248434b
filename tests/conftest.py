import pytest

from crates_backend.app import create_app
from crates_backend.config import Settings
from crates_backend.discogs_client import DiscogsClient
from tests.support.fakes import (
    FakeDatabase,
    FakeEmailService,
    FakeSession,
    FakeSpotify,
    InMemoryCollectionRepository,
    InMemoryUserRepository,
)

TEST_SECRET = 'test-jwt-secret'
DEFAULT_PASSWORD = 'password123'


@pytest.fixture
def settings():
    return Settings(jwt_secret=TEST_SECRET, enrichment_delay=0)


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def collections():
    return InMemoryCollectionRepository()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def spotify():
    return FakeSpotify()


@pytest.fixture
def discogs_session():
    return FakeSession()


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
def app(settings, users, collections, email_service, spotify, discogs_session, database):
    application = create_app(
        settings=settings,
        user_repository=users,
        collection_repository=collections,
        spotify_client=spotify,
        discogs_client=DiscogsClient(token='discogs-token', session=discogs_session),
        email_service=email_service,
        database=database,
    )
    application.config['TESTING'] = True
    yield application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(client):
    def _register(email='listener@example.com', password=DEFAULT_PASSWORD, name='Listener'):
        return client.post('/auth/register', json={'email': email, 'password': password, 'name': name})
    return _register


@pytest.fixture
def verified_user(client, register, email_service):
    """Register, verify and log in; returns a callable producing auth headers."""
    def _login(email='listener@example.com', password=DEFAULT_PASSWORD, name='Listener'):
        assert register(email, password, name).status_code == 201
        token = email_service.last_verification_token(email)
        assert client.get(f'/auth/verify-email?token={token}').status_code == 200

        response = client.post('/auth/login', json={'email': email, 'password': password})
        assert response.status_code == 200
        return {'Authorization': f"Bearer {response.get_json()['token']}"}
    return _login


@pytest.fixture
def auth_headers(verified_user):
    return verified_user()
