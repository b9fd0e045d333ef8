import pytest
from click.testing import CliRunner

from stockbridge import scheduler as scheduler_module
from stockbridge.cli import sync_catalog
from stockbridge.core.config import Settings
from stockbridge.core.security import check_auth_configuration
from stockbridge.database import normalize_database_url
from stockbridge.integrations.platforms.mercadolibre import MercadoLibrePlatform
from stockbridge.integrations.platforms.tiendanube import TiendaNubePlatform
from stockbridge.integrations.setup import build_services


@pytest.fixture(autouse=True)
def reset_scheduler():
    scheduler_module.scheduler = None
    yield
    scheduler_module.scheduler = None


def test_normalize_database_url():
    assert normalize_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


def test_missing_platform_credentials():
    settings = Settings(ML_ACCESS_TOKEN="a", ML_REFRESH_TOKEN=None, ML_CLIENT_ID="c", ML_CLIENT_SECRET="s",
                        TN_ACCESS_TOKEN=None, TN_STORE_ID="1")

    assert settings.missing_platform_credentials() == ["ML_REFRESH_TOKEN", "TN_ACCESS_TOKEN"]


def test_fallback_password_is_reported(caplog):
    settings = Settings(BASIC_AUTH_PASSWORD=None, ENVIRONMENT="development")

    with caplog.at_level("WARNING", logger="stockbridge.core.security"):
        assert check_auth_configuration(settings) is False

    assert "development password" in caplog.text


def test_configured_password_is_not_reported(caplog):
    settings = Settings(BASIC_AUTH_PASSWORD="s3cret")

    with caplog.at_level("WARNING", logger="stockbridge.core.security"):
        assert check_auth_configuration(settings) is True

    assert caplog.text == ""


def test_build_services_shares_token_manager(settings, mocker):
    services = build_services(settings, mocker.MagicMock())

    assert services.ml_client.token_manager is services.token_manager
    assert services.stock_manager.push_concurrency == 4
    assert isinstance(services.stock_manager.platforms["ml"], MercadoLibrePlatform)
    assert isinstance(services.stock_manager.platforms["tn"], TiendaNubePlatform)
    assert services.tn_webhooks.secret == "tn-webhook-secret"
    assert services.pool.workers == 2


def test_tn_secret_falls_back_to_client_secret(mocker):
    settings = Settings(TN_WEBHOOK_SECRET=None, TN_CLIENT_SECRET="app-secret")

    services = build_services(settings, mocker.MagicMock())

    assert services.tn_webhooks.secret == "app-secret"


def test_scheduler_jobs_follow_settings(mocker):
    settings = Settings(ENABLE_CRON=True, ML_SYNC_CRON="0 * * * *", TN_SYNC_CRON="30 */6 * * *")

    sched = scheduler_module.create_scheduler(mocker.Mock(), settings)

    assert {job.id for job in sched.get_jobs()} == {"sync_ml_catalog", "sync_tn_catalog"}


def test_scheduler_disabled_by_default(mocker):
    sched = scheduler_module.create_scheduler(mocker.Mock(), Settings(ENABLE_CRON=False))

    assert sched.get_jobs() == []


@pytest.mark.asyncio
async def test_scheduled_task_logs_instead_of_raising(mocker):
    catalog_sync = mocker.Mock(sync_ml_items_to_db=mocker.AsyncMock(side_effect=RuntimeError("api down")))

    await scheduler_module.sync_ml_catalog_task(catalog_sync)

    catalog_sync.sync_ml_items_to_db.assert_awaited_once_with(mode="all")


def test_cli_runs_sync(mocker):
    run_sync = mocker.patch.object(sync_catalog, "run_sync", mocker.AsyncMock(return_value={"with_sku": 3}))
    mocker.patch.object(sync_catalog, "configure_logging")

    result = CliRunner().invoke(sync_catalog.main, ["ml", "--partial", "--limit", "10"])

    assert result.exit_code == 0
    assert '"with_sku": 3' in result.output
    run_sync.assert_awaited_once_with("ml", partial=True, limit=10)


def test_cli_reports_failure(mocker):
    mocker.patch.object(sync_catalog, "run_sync", mocker.AsyncMock(side_effect=RuntimeError("no DATABASE_URL")))
    mocker.patch.object(sync_catalog, "configure_logging")

    result = CliRunner().invoke(sync_catalog.main, ["tn"])

    assert result.exit_code == 1
    assert "no DATABASE_URL" in result.output
