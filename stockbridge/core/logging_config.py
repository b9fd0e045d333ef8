# stockbridge/core/logging_config.py
"""
Centralized logging configuration for the application.

Keeps stockbridge logs visible while quieting HTTP, database and scheduler
libraries.
"""

import logging
import os
from typing import Optional


def configure_logging(log_level: Optional[str] = None):
    """
    Configure logging for the application.

    - App code: INFO (or DEBUG if LOG_LEVEL=DEBUG)
    - HTTP clients (httpx, httpcore): WARNING only
    - Database drivers and SQLAlchemy: WARNING only
    - APScheduler: WARNING only
    """
    log_level = (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    for noisy in ("httpx", "httpcore", "sqlalchemy", "sqlalchemy.engine",
                  "asyncpg", "aiosqlite", "apscheduler", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("stockbridge").setLevel(level)
    logging.getLogger("__main__").setLevel(level)

    logging.getLogger(__name__).info(f"Logging configured at level: {log_level}")
