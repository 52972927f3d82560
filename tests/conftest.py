import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.database import create_db_engine, create_session_factory, init_db
from app.main import create_app
from app.tokens import TokenCodec

PASSWORD = "correct-horse-battery"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'portal.db'}",
        jwt_secret_key="test-secret",
        session_duration_minutes=30,
        session_idle_timeout_minutes=5,
        session_sweep_interval_seconds=3600,
        password_min_length=8,
    )


@pytest.fixture
def codec(settings) -> TokenCodec:
    return TokenCodec(settings.jwt_secret_key, settings.jwt_algorithm)


@pytest.fixture
def db(settings):
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="ada@example.edu", password=PASSWORD, name="Ada Lovelace"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def login(client, email="ada@example.edu", password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def use_token(client, token, cookie_name="auth_token"):
    client.cookies.clear()
    client.cookies.set(cookie_name, token)


@pytest.fixture
def logged_in(client):
    """Client holding a live session cookie for ada@example.edu."""
    register(client)
    response = login(client)
    assert response.status_code == 200
    return client
