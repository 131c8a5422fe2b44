from fastapi import APIRouter, Depends
from pymongo.errors import PyMongoError

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.dependencies import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "Variant Inventory Service"}


@router.get("/health/db")
async def database_health(db=Depends(get_db), settings: Settings = Depends(get_settings)):
    """Check database connectivity and the collections the service uses"""
    try:
        await db.command("ping")
        collections = await db.list_collection_names()
        expected = [settings.PRODUCTS_COLLECTION, settings.ORDERS_COLLECTION, settings.AUDIT_COLLECTION]
        return {
            "status": "healthy",
            "database": "connected",
            "collections": {name: name in collections for name in expected},
        }
    except PyMongoError as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }
