"""
Scheduled catalog syncs.

Runs the MercadoLibre and TiendaNube catalog imports inside the FastAPI
process on their cron schedules, refreshing the platform link tables that
propagation resolves listings from.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from stockbridge.services.catalog_sync import CatalogSyncService

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def sync_ml_catalog_task(catalog_sync: CatalogSyncService):
    """Task to import every MercadoLibre listing"""
    try:
        logger.info("=== SCHEDULED MERCADOLIBRE SYNC STARTING ===")
        summary = await catalog_sync.sync_ml_items_to_db(mode="all")
        logger.info(f"Scheduled MercadoLibre sync completed: {summary}")
    except Exception as e:
        logger.exception(f"Error in scheduled MercadoLibre sync: {str(e)}")


async def sync_tn_catalog_task(catalog_sync: CatalogSyncService):
    """Task to import every TiendaNube variant"""
    try:
        logger.info("=== SCHEDULED TIENDANUBE SYNC STARTING ===")
        summary = await catalog_sync.sync_tn_items_to_db()
        logger.info(f"Scheduled TiendaNube sync completed: {summary}")
    except Exception as e:
        logger.exception(f"Error in scheduled TiendaNube sync: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(catalog_sync: CatalogSyncService, settings) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.ENABLE_CRON:
        scheduler.add_job(
            sync_ml_catalog_task,
            CronTrigger.from_crontab(settings.ML_SYNC_CRON),
            args=[catalog_sync],
            id="sync_ml_catalog",
            name="Sync MercadoLibre Catalog",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=3600,
        )
        logger.info(f"MercadoLibre sync job added with schedule: {settings.ML_SYNC_CRON}")

        scheduler.add_job(
            sync_tn_catalog_task,
            CronTrigger.from_crontab(settings.TN_SYNC_CRON),
            args=[catalog_sync],
            id="sync_tn_catalog",
            name="Sync TiendaNube Catalog",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=3600,
        )
        logger.info(f"TiendaNube sync job added with schedule: {settings.TN_SYNC_CRON}")
    else:
        logger.info("Scheduled sync is disabled. Set ENABLE_CRON=true to enable")

    return scheduler


async def start_scheduler(catalog_sync: CatalogSyncService, settings):
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(catalog_sync, settings)

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")

        jobs = scheduler.get_jobs()
        if jobs:
            logger.info(f"Active scheduled jobs: {len(jobs)}")
            for job in jobs:
                logger.info(f"  - {job.name}: {job.trigger}")
        else:
            logger.info("No scheduled jobs configured")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped successfully")
    scheduler = None


def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
