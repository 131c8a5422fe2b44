# tests/conftest.py
import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.database import ensure_indexes
from variant_inventory.dependencies import get_db
from variant_inventory.main import create_app
from variant_inventory.services.inventory_service import InventoryService

from tests.mocks.mock_document_store import MockDatabase


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        MONGODB_URL="mongodb://localhost:27017",
        MONGODB_DB_NAME="test_db",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="test",
    )


@pytest_asyncio.fixture
async def db(settings):
    """In-memory database with the service indexes in place"""
    database = MockDatabase()
    await ensure_indexes(database, settings)
    return database


@pytest.fixture
def products(db, settings):
    return db[settings.PRODUCTS_COLLECTION]


@pytest.fixture
def orders(db, settings):
    return db[settings.ORDERS_COLLECTION]


@pytest.fixture
def audit(db, settings):
    return db[settings.AUDIT_COLLECTION]


@pytest.fixture
def insert_product(products):
    """Insert a product document and return its id as a string"""
    async def _insert(doc):
        result = await products.insert_one(doc)
        return str(result.inserted_id)
    return _insert


@pytest.fixture
def insert_order(orders):
    async def _insert(doc):
        result = await orders.insert_one(doc)
        return str(result.inserted_id)
    return _insert


@pytest.fixture
def stored(products):
    """Synchronous read of a product as currently stored"""
    def _stored(product_id):
        return products.get(ObjectId(product_id))
    return _stored


@pytest.fixture
def inventory_service(db, settings):
    return InventoryService(db, settings)


@pytest_asyncio.fixture
async def client(db, settings):
    """HTTP client against the app with the database and settings overridden"""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
