from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.database import get_database
from variant_inventory.services.audit_ledger import InventoryAuditLedger
from variant_inventory.services.inventory_service import InventoryService
from variant_inventory.services.order_inventory_processor import OrderInventoryProcessor
from variant_inventory.services.reconciliation_service import ReconciliationService
from variant_inventory.services.stock_lookup import StockLookupService


def get_db(settings: Settings = Depends(get_settings)) -> AsyncIOMotorDatabase:
    """Dependency for getting the Mongo database handle."""
    return get_database(settings)


def get_inventory_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> InventoryService:
    return InventoryService(db, settings)


def get_reconciliation_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ReconciliationService:
    return ReconciliationService(db, settings)


def get_order_processor(
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> OrderInventoryProcessor:
    return OrderInventoryProcessor(inventory_service)


def get_stock_lookup(
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> StockLookupService:
    return StockLookupService(db, settings)


def get_audit_ledger(
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> InventoryAuditLedger:
    return InventoryAuditLedger(db[settings.AUDIT_COLLECTION])
