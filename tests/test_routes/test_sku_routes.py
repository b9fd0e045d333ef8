import pytest

from stockbridge.core.config import clear_settings_cache
from stockbridge.core.enums import MovementReason
from stockbridge.core.exceptions import InvalidStockError, SkuNotFoundError, StockStorageError
from stockbridge.core.security import get_current_username
from stockbridge.integrations.base import PropagationResult, PushOutcome
from stockbridge.integrations.stock_manager import StockUpdateResult
from stockbridge.schemas.stock import SkuRead
from tests.mocks.fake_services import sku_row


def test_list_skus(test_client):
    response = test_client.get("/skus")

    assert response.status_code == 200
    assert response.json()[0]["sku"] == "ABC-1"


def test_list_with_sources(test_client):
    response = test_client.get("/skus/with-sources")

    assert response.status_code == 200
    assert response.json()[0]["has_ml"] is True
    assert response.json()[0]["has_tn"] is False


def test_list_linked(test_client):
    assert test_client.get("/skus/linked").json() == []


def test_get_sku_not_found(test_client, fake_services):
    fake_services.ledger.get_sku.return_value = None

    assert test_client.get("/skus/NOPE").status_code == 404
    assert test_client.get("/skus/NOPE/movements").status_code == 404


def test_update_stock_returns_propagation(test_client, fake_services):
    fake_services.stock_manager.update_stock.return_value = StockUpdateResult(
        sku=SkuRead(**sku_row(stock=7)),
        applied=True,
        delta=-3,
        propagation=PropagationResult(sku="ABC-1", stock=7, outcomes=[
            PushOutcome(platform="ml", external_id="MLA1", stock=7, success=True),
            PushOutcome(platform="tn", external_id="100/200", stock=7, success=False,
                        status_code=500, error="boom"),
        ]),
    )

    response = test_client.put("/skus/ABC-1/stock", json={"stock": 7})

    assert response.status_code == 200
    body = response.json()
    assert body["stock"] == 7
    assert body["applied"] is True
    assert body["delta"] == -3
    assert [(p["platform"], p["success"]) for p in body["propagation"]] == [("ml", True), ("tn", False)]
    fake_services.stock_manager.update_stock.assert_awaited_once_with("ABC-1", 7, MovementReason.MANUAL_UPDATE)


@pytest.mark.parametrize("error, status_code", [
    (InvalidStockError("negative"), 400),
    (SkuNotFoundError("missing"), 404),
    (StockStorageError("db down"), 500),
])
def test_update_stock_error_mapping(test_client, fake_services, error, status_code):
    fake_services.stock_manager.update_stock.side_effect = error

    response = test_client.put("/skus/ABC-1/stock", json={"stock": 3})

    assert response.status_code == status_code


def test_update_stock_rejects_non_numeric_body(test_client, fake_services):
    response = test_client.put("/skus/ABC-1/stock", json={"stock": "7"})

    assert response.status_code == 422
    fake_services.stock_manager.update_stock.assert_not_awaited()


def test_sku_routes_require_auth(app, monkeypatch):
    from fastapi.testclient import TestClient

    app.dependency_overrides.pop(get_current_username)
    monkeypatch.setenv("BASIC_AUTH_USERNAME", "admin")
    monkeypatch.setenv("BASIC_AUTH_PASSWORD", "s3cret")
    clear_settings_cache()
    try:
        client = TestClient(app)
        assert client.get("/skus").status_code == 401
        assert client.get("/skus", auth=("admin", "wrong")).status_code == 401
        assert client.get("/skus", auth=("admin", "s3cret")).status_code == 200
    finally:
        clear_settings_cache()
