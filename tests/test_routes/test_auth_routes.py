import httpx
import pytest
from fastapi.testclient import TestClient

from stockbridge.core.security import get_current_username
from stockbridge.main import create_app
from tests.mocks.fake_services import build_fake_services


def test_start_redirects_to_tiendanube(test_client):
    response = test_client.get("/auth/tiendanube/iniciar", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "https://tn.test/apps/1234/authorize"


def test_start_without_configuration_shows_error(test_client, fake_services):
    fake_services.tn_auth.client_id = None

    response = test_client.get("/auth/tiendanube/iniciar", follow_redirects=False)

    assert response.status_code == 500
    assert "TN_CLIENT_ID" in response.text


@pytest.mark.parametrize("path", ["/auth/tiendanube/callback", "/auth/tn/callback"])
def test_callback_shows_credentials(test_client, path):
    response = test_client.get(path, params={"code": "the-code"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "TN_ACCESS_TOKEN=tn-token" in response.text
    assert "TN_STORE_ID=4242" in response.text


def test_callback_without_code(test_client):
    response = test_client.get("/auth/tiendanube/callback")

    assert response.status_code == 400
    assert "No authorization code received" in response.text


def test_callback_exchange_failure_shows_error():
    def rejecting(request):
        return httpx.Response(200, json={"error": "invalid_grant", "error_description": "code <expired>"})

    app = create_app(with_lifespan=False)
    app.state.services = build_fake_services(tn_transport=httpx.MockTransport(rejecting))

    with TestClient(app) as client:
        response = client.get("/auth/tiendanube/callback", params={"code": "old"})

    assert response.status_code == 500
    assert "code &lt;expired&gt;" in response.text
    assert "TN_ACCESS_TOKEN" not in response.text


def test_install_routes_need_no_credentials():
    app = create_app(with_lifespan=False)
    app.state.services = build_fake_services()
    assert get_current_username not in app.dependency_overrides

    with TestClient(app) as client:
        response = client.get("/auth/tn/callback", params={"code": "the-code"})

    assert response.status_code == 200
