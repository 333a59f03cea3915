import pytest
from fastapi.testclient import TestClient

from cloudnotes.config import Settings
from cloudnotes.main import create_app

JWT_SECRET = "dev-secret-for-tests"


@pytest.fixture()
def settings(tmp_path):
    # isolate data dir per test
    return Settings(data_dir=tmp_path, jwt_secret=JWT_SECRET, bcrypt_rounds=4, log_level="DEBUG")


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def auth(app):
    """auth("userA") -> headers carrying a bearer token for userA."""

    def _headers(user_id: str) -> dict:
        token = app.state.identity.create_access_token(user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
