from fastapi import APIRouter, Depends
from sqlalchemy import text

from stockbridge.integrations.setup import AppServices, get_services
from stockbridge.scheduler import get_scheduler_status

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "StockBridge"}


@router.get("/health/db")
async def database_health(services: AppServices = Depends(get_services)):
    """Check database connectivity and the worker pool"""
    try:
        async with services.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }

    return {
        "status": "healthy",
        "database": "connected",
        "webhook_pool": "running" if services.pool.running else "stopped",
        "scheduler": get_scheduler_status()["status"],
    }
