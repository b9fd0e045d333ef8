# stockbridge/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from stockbridge.core.config import get_settings
from stockbridge.core.logging_config import configure_logging
from stockbridge.core.security import check_auth_configuration, require_auth
from stockbridge.database import get_engine, get_session_factory
from stockbridge.integrations.setup import build_services
from stockbridge.routes import auth, health, skus, webhooks
from stockbridge.routes.platforms.ml import router as ml_router
from stockbridge.routes.platforms.tn import router as tn_router
from stockbridge.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    check_auth_configuration(settings)

    services = build_services(settings, get_session_factory())
    app.state.services = services

    await services.pool.start()
    await start_scheduler(services.catalog_sync, settings)
    logger.info("StockBridge started")
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()
        await services.pool.stop()
        await get_engine().dispose()
        logger.info("StockBridge stopped")


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Build the application. Tests pass `with_lifespan=False` and set `app.state.services` themselves."""
    app = FastAPI(
        title="StockBridge",
        lifespan=lifespan if with_lifespan else None,
    )

    # Add middleware to handle HTTPS behind proxy
    @app.middleware("http")
    async def proxy_headers_middleware(request: Request, call_next):
        forwarded_proto = request.headers.get("x-forwarded-proto")
        if forwarded_proto == "https":
            request.scope["scheme"] = "https"
        return await call_next(request)

    app.include_router(skus.router, dependencies=[require_auth()])
    app.include_router(ml_router, dependencies=[require_auth()])
    app.include_router(tn_router, dependencies=[require_auth()])
    app.include_router(webhooks.router)  # Webhooks need to be accessible without auth
    app.include_router(auth.router)  # Opened by the merchant and by the TiendaNube redirect
    app.include_router(health.router)  # Health check should be accessible without auth

    return app


app = create_app()
