import pytest
from fastapi.testclient import TestClient

from main import app
from app.rate_limit import limiter
from security.session import require_user

TEST_USER = {"id": "user-1", "email": "creator@example.com"}


@pytest.fixture(autouse=True)
def no_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user_client(client):
    """TestClient with require_user resolved to TEST_USER."""
    app.dependency_overrides[require_user] = lambda: TEST_USER
    yield client
    app.dependency_overrides.pop(require_user, None)
