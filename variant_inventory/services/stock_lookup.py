# variant_inventory/services/stock_lookup.py
"""
Read-only stock queries used by storefront and admin lookups.

All answers come from ``VariantStockView``'s authoritative source, so a product
that only carries the legacy flat ``variants`` list still reports stock.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.core.enums import InventoryErrorCode
from variant_inventory.core.exceptions import ProductNotFoundError, VariantNotFoundError
from variant_inventory.core.utils import parse_object_id
from variant_inventory.models.product import VariantStockView
from variant_inventory.schemas.stock import (
    ColorStock,
    InvalidStockItem,
    ProductInventory,
    ProductStockSnapshot,
    SizeStock,
    StockSnapshot,
    StockValidationItem,
    StockValidationReport,
    ValidStockItem,
    VariantAvailability,
)

logger = logging.getLogger(__name__)


class StockLookupService:

    def __init__(self, db: AsyncIOMotorDatabase, settings: Settings = None):
        self.settings = settings or get_settings()
        self.products = db[self.settings.PRODUCTS_COLLECTION]

    async def _load(self, product_id: str) -> VariantStockView:
        product = await self.products.find_one({"_id": parse_object_id(product_id), "deleted": {"$ne": True}})
        if product is None:
            raise ProductNotFoundError("Product not found")
        return VariantStockView(product, self.settings.DEFAULT_COLOR_LABEL)

    async def get_variant_stock(self, product_id: str, size: str, color: str) -> VariantAvailability:
        """Stock for one size/color; raises VariantNotFoundError if no structure holds it."""
        view = await self._load(product_id)
        slot = view.find_slot(size, color)
        if slot is None:
            raise VariantNotFoundError(f"Variant {size}/{color} not found for this product")
        return VariantAvailability(
            size=slot.size,
            color=slot.color or self.settings.DEFAULT_COLOR_LABEL,
            quantity=slot.quantity,
            available=slot.quantity > 0,
        )

    async def get_product_inventory(self, product_id: str, size: Optional[str] = None) -> ProductInventory:
        """Per-variant availability, optionally limited to one size."""
        view = await self._load(product_id)
        source = view.authoritative_source
        slots = view.authoritative_slots()
        if size is not None:
            slots = [slot for slot in slots if slot.size == size]
            if not slots:
                raise VariantNotFoundError("Size not found for this product")

        inventory = [
            VariantAvailability(
                size=slot.size,
                color=slot.color or self.settings.DEFAULT_COLOR_LABEL,
                quantity=slot.quantity,
                available=slot.quantity > 0,
            )
            for slot in slots
        ]
        return ProductInventory(
            product_id=product_id,
            title=view.title,
            source=source.value if source else None,
            total=sum(item.quantity for item in inventory),
            inventory=inventory,
        )

    async def get_stock_snapshot(self, product_ids: List[str]) -> StockSnapshot:
        """
        Latest stock for several products at once, grouped size -> colors.
        Ids that are malformed or missing are reported in ``missing_product_ids``.
        """
        object_ids = [ObjectId(pid) for pid in product_ids if ObjectId.is_valid(pid)]
        products: List[Dict[str, Any]] = []
        if object_ids:
            cursor = self.products.find({"_id": {"$in": object_ids}, "deleted": {"$ne": True}})
            products = await cursor.to_list(length=len(object_ids))

        snapshots = [self._snapshot(product) for product in products]
        found = {snapshot.product_id for snapshot in snapshots}
        missing = [pid for pid in product_ids if pid not in found]
        if missing:
            logger.debug(f"Stock snapshot missing {len(missing)} products")

        return StockSnapshot(
            products=snapshots,
            missing_product_ids=missing,
            timestamp=datetime.now(timezone.utc),
        )

    def _snapshot(self, product: Dict[str, Any]) -> ProductStockSnapshot:
        view = VariantStockView(product, self.settings.DEFAULT_COLOR_LABEL)
        by_size: Dict[str, SizeStock] = {}
        for slot in view.authoritative_slots():
            size_stock = by_size.setdefault(str(slot.size), SizeStock(size=str(slot.size)))
            size_stock.colors.append(ColorStock(
                color=slot.color or self.settings.DEFAULT_COLOR_LABEL,
                stock=slot.quantity,
            ))
        return ProductStockSnapshot(
            product_id=str(product["_id"]),
            title=view.title,
            last_updated=product.get("updatedAt"),
            variants=list(by_size.values()),
            total_stock=view.total(),
        )

    async def validate_items(self, items: List[StockValidationItem]) -> StockValidationReport:
        """
        Check each cart line against current stock before an order is placed.

        Lines are judged independently; a line is invalid when a field is
        missing, the product or variant does not exist, or the requested
        quantity exceeds what the authoritative structure holds.
        """
        object_ids = {
            item.product_id: ObjectId(item.product_id)
            for item in items
            if item.product_id and ObjectId.is_valid(item.product_id)
        }
        views: Dict[str, VariantStockView] = {}
        if object_ids:
            cursor = self.products.find({"_id": {"$in": list(object_ids.values())}, "deleted": {"$ne": True}})
            for product in await cursor.to_list(length=len(object_ids)):
                views[str(product["_id"])] = VariantStockView(product, self.settings.DEFAULT_COLOR_LABEL)

        report = StockValidationReport()
        for item in items:
            if not (item.product_id and item.size and item.color) or item.quantity <= 0:
                report.invalid_items.append(InvalidStockItem(
                    item=item, error="Missing required fields", error_code=InventoryErrorCode.MISSING_FIELDS,
                ))
                continue
            if item.product_id not in object_ids:
                report.invalid_items.append(InvalidStockItem(
                    item=item, error="Invalid product ID", error_code=InventoryErrorCode.INVALID_IDENTIFIER,
                ))
                continue

            view = views.get(str(object_ids[item.product_id]))
            if view is None:
                report.invalid_items.append(InvalidStockItem(
                    item=item, error="Product not found", error_code=InventoryErrorCode.PRODUCT_NOT_FOUND,
                ))
                continue
            if not any(slot.size == item.size for slot in view.authoritative_slots()):
                report.invalid_items.append(InvalidStockItem(
                    item=item, error="Size variant not found", error_code=InventoryErrorCode.VARIANT_NOT_FOUND,
                ))
                continue
            slot = view.find_slot(item.size, item.color)
            if slot is None:
                report.invalid_items.append(InvalidStockItem(
                    item=item, error="Color variant not found", error_code=InventoryErrorCode.VARIANT_NOT_FOUND,
                ))
                continue
            if slot.quantity < item.quantity:
                report.invalid_items.append(InvalidStockItem(
                    item=item,
                    error="Insufficient stock",
                    error_code=InventoryErrorCode.INSUFFICIENT_STOCK,
                    available=slot.quantity,
                    requested=item.quantity,
                ))
                continue

            report.valid_items.append(ValidStockItem(**item.model_dump(), available=slot.quantity))

        report.valid = not report.invalid_items
        if report.invalid_items:
            logger.info(f"Stock validation rejected {len(report.invalid_items)} of {len(items)} items")
        return report
