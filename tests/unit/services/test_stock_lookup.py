# tests/unit/services/test_stock_lookup.py
import pytest
from bson import ObjectId

from variant_inventory.core.enums import InventoryErrorCode
from variant_inventory.core.exceptions import (
    InvalidIdentifierError,
    ProductNotFoundError,
    VariantNotFoundError,
)
from variant_inventory.schemas.stock import StockValidationItem
from variant_inventory.services.stock_lookup import StockLookupService

from tests.mocks import MockData


@pytest.fixture
def lookup(db, settings):
    return StockLookupService(db, settings)


@pytest.mark.asyncio
async def test_variant_stock_reads_size_variants(lookup, insert_product):
    product_id = await insert_product(MockData.product(
        size_variants=MockData.size_variants(("M", "Red", 4), ("M", "Blue", 0)),
        inventory=MockData.inventory(("M", "Red", 1)),
    ))

    red = await lookup.get_variant_stock(product_id, "M", "Red")
    blue = await lookup.get_variant_stock(product_id, "M", "Blue")

    assert (red.quantity, red.available) == (4, True)
    assert (blue.quantity, blue.available) == (0, False)


@pytest.mark.asyncio
async def test_variant_stock_falls_back_to_legacy_variants(lookup, insert_product):
    product_id = await insert_product(MockData.product(variants=[{"size": "L", "quantity": 2}]))

    availability = await lookup.get_variant_stock(product_id, "L", "Green")

    assert availability.quantity == 2
    assert availability.color == "Default"


@pytest.mark.asyncio
async def test_variant_stock_errors(lookup, insert_product):
    product_id = await insert_product(MockData.product(size_variants=MockData.size_variants(("M", "Red", 4))))
    deleted_id = await insert_product(MockData.product(
        size_variants=MockData.size_variants(("M", "Red", 4)), deleted=True,
    ))

    with pytest.raises(VariantNotFoundError):
        await lookup.get_variant_stock(product_id, "XS", "Red")
    with pytest.raises(ProductNotFoundError):
        await lookup.get_variant_stock(str(ObjectId()), "M", "Red")
    with pytest.raises(ProductNotFoundError):
        await lookup.get_variant_stock(deleted_id, "M", "Red")
    with pytest.raises(InvalidIdentifierError):
        await lookup.get_variant_stock("123", "M", "Red")


@pytest.mark.asyncio
async def test_product_inventory_filtered_by_size(lookup, insert_product):
    product_id = await insert_product(MockData.product(
        title="Linen Shirt",
        size_variants=MockData.size_variants(("M", "Red", 4), ("M", "Blue", 1), ("L", "Red", 3)),
    ))

    everything = await lookup.get_product_inventory(product_id)
    medium = await lookup.get_product_inventory(product_id, size="M")

    assert everything.total == 8
    assert everything.source == "sizeVariants"
    assert everything.title == "Linen Shirt"
    assert [(v.color, v.quantity) for v in medium.inventory] == [("Red", 4), ("Blue", 1)]
    assert medium.total == 5
    with pytest.raises(VariantNotFoundError):
        await lookup.get_product_inventory(product_id, size="XXL")


@pytest.mark.asyncio
async def test_stock_snapshot_groups_by_size_and_reports_missing(lookup, insert_product):
    first = await insert_product(MockData.product(
        title="Tee", size_variants=MockData.size_variants(("S", "Red", 1), ("S", "Blue", 2), ("M", "Red", 3)),
    ))
    second = await insert_product(MockData.product(title="Cap", inventory=MockData.inventory(("OS", None, 7))))
    unknown = str(ObjectId())

    snapshot = await lookup.get_stock_snapshot([first, second, unknown, "garbage"])

    by_id = {p.product_id: p for p in snapshot.products}
    assert snapshot.missing_product_ids == [unknown, "garbage"]
    assert by_id[first].total_stock == 6
    assert [s.size for s in by_id[first].variants] == ["S", "M"]
    assert [(c.color, c.stock) for c in by_id[first].variants[0].colors] == [("Red", 1), ("Blue", 2)]
    assert by_id[second].variants[0].colors[0].color == "Default"
    assert snapshot.timestamp is not None


@pytest.mark.asyncio
async def test_validate_items_reports_each_failure_reason(lookup, insert_product):
    product_id = await insert_product(MockData.product(
        size_variants=MockData.size_variants(("M", "Red", 2), ("L", "Red", 5)),
    ))
    items = [
        StockValidationItem(product_id=product_id, size="L", color="Red", quantity=5),
        StockValidationItem(product_id=product_id, size="M", color="Red", quantity=3),
        StockValidationItem(product_id=product_id, size="XL", color="Red", quantity=1),
        StockValidationItem(product_id=product_id, size="M", color="Green", quantity=1),
        StockValidationItem(product_id=str(ObjectId()), size="M", color="Red", quantity=1),
        StockValidationItem(product_id="nope", size="M", color="Red", quantity=1),
        StockValidationItem(product_id=product_id, size="M", quantity=1),
    ]

    report = await lookup.validate_items(items)

    assert report.valid is False
    assert [(v.size, v.available, v.status) for v in report.valid_items] == [("L", 5, "valid")]
    assert [i.error for i in report.invalid_items] == [
        "Insufficient stock",
        "Size variant not found",
        "Color variant not found",
        "Product not found",
        "Invalid product ID",
        "Missing required fields",
    ]
    shortfall = report.invalid_items[0]
    assert (shortfall.available, shortfall.requested) == (2, 3)
    assert shortfall.error_code == InventoryErrorCode.INSUFFICIENT_STOCK


@pytest.mark.asyncio
async def test_validate_items_reads_legacy_stock(lookup, insert_product):
    product_id = await insert_product(MockData.product(variants=[{"size": "S", "quantity": 3}]))

    report = await lookup.validate_items([StockValidationItem(product_id=product_id, size="S", color="Blue", quantity=3)])

    assert report.valid is True
    assert report.invalid_items == []
    assert report.valid_items[0].available == 3
