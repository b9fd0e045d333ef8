# tests/test_routes/conftest.py
import pytest
from fastapi.testclient import TestClient

from stockbridge.core.security import get_current_username
from stockbridge.main import create_app
from tests.mocks.fake_services import build_fake_services


@pytest.fixture
def fake_services():
    return build_fake_services()


@pytest.fixture
def app(fake_services):
    app = create_app(with_lifespan=False)
    app.state.services = fake_services
    app.dependency_overrides[get_current_username] = lambda: "tester"
    return app


@pytest.fixture
def test_client(app):
    with TestClient(app) as client:
        yield client
