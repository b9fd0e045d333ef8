# stockbridge/cli/sync_catalog.py
"""
Run a catalog import once, outside the web process.

    python -m stockbridge.cli.sync_catalog ml --partial --limit 20
    python -m stockbridge.cli.sync_catalog tn
"""

import asyncio
import json
import logging

import click

from stockbridge.core.config import get_settings
from stockbridge.core.logging_config import configure_logging
from stockbridge.database import get_engine, get_session_factory
from stockbridge.integrations.setup import build_services

logger = logging.getLogger(__name__)


async def run_sync(platform: str, partial: bool = False, limit: int = 50) -> dict:
    services = build_services(get_settings(), get_session_factory())
    try:
        if platform == "ml":
            return await services.catalog_sync.sync_ml_items_to_db(
                mode="partial" if partial else "all", limit=limit
            )
        return await services.catalog_sync.sync_tn_items_to_db()
    finally:
        await get_engine().dispose()


@click.command()
@click.argument("platform", type=click.Choice(["ml", "tn"]))
@click.option("--partial", is_flag=True, help="MercadoLibre only: import the first page of listings")
@click.option("--limit", default=50, type=click.IntRange(1, 50), help="Page size for --partial")
def main(platform, partial, limit):
    """Import PLATFORM listings into the local database."""
    configure_logging(get_settings().LOG_LEVEL)
    try:
        summary = asyncio.run(run_sync(platform, partial=partial, limit=limit))
    except Exception as e:
        logger.exception("Catalog sync failed")
        raise click.ClickException(str(e))
    click.echo(json.dumps(summary, indent=2, default=str))


if __name__ == "__main__":
    main()
