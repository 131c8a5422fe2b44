# variant_inventory/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pymongo.errors import PyMongoError

from variant_inventory import __version__
from variant_inventory.core.config import get_settings
from variant_inventory.core.logging_config import configure_logging
from variant_inventory.database import close_client, ensure_indexes, get_database
from variant_inventory.routes import health, inventory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    try:
        await ensure_indexes(get_database(settings), settings)
    except PyMongoError as e:
        # The service still starts; ledger claims fall back to best-effort until indexes exist
        logger.error(f"Could not ensure indexes at startup: {e}")
    yield
    close_client()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Variant Inventory API",
        description="Order-driven stock decrements and stock structure reconciliation",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(inventory.router)
    return app


app = create_app()
