# variant_inventory/core/config.py

import os
from functools import lru_cache
from typing import List
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


def _parse_status_list(value):
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        return [status.strip() for status in value.split(",") if status.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(status).strip() for status in value if str(status).strip()]
    return []


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "ecommerce"
    MONGODB_TIMEOUT_MS: int = 5000

    # Collections
    PRODUCTS_COLLECTION: str = "products"
    ORDERS_COLLECTION: str = "orders"
    AUDIT_COLLECTION: str = "inventoryAudit"

    # Reconciliation defaults
    DEFAULT_SEED_STOCK: int = 10
    DEFAULT_COLOR_LABEL: str = "Default"

    # Guarded decrements retry when a concurrent writer moved the slot
    MAX_DECREMENT_ATTEMPTS: int = 3

    # Batch order sync
    ORDER_SYNC_STATUSES: str = "processing,shipped,delivered"
    PENDING_ORDER_LOOKBACK_HOURS: int = 24

    # Logging
    LOG_LEVEL: str = "INFO"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    @property
    def order_sync_statuses(self) -> List[str]:
        return _parse_status_list(self.ORDER_SYNC_STATUSES)

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
