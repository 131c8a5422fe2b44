# variant_inventory/services/reconciliation_service.py
"""
Reconciliation service for repairing product stock structures.
Used by both the CLI commands and the inventory routes to avoid code duplication.

Two batch passes, run on demand rather than per order:

- structure backfill: derive a missing ``inventory`` aggregate from
  ``sizeVariants`` (or the reverse), and refresh a stale ``inventory.total``
- cross-structure sync: where both structures hold the same size/color,
  ``inventory.variants`` quantities win and ``sizeVariants`` is overwritten

Each product is repaired with one guarded update, so a concurrent edit to the
same document makes the repair miss instead of being overwritten.
"""

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.core.enums import StockSource
from variant_inventory.core.exceptions import InvalidIdentifierError
from variant_inventory.core.utils import parse_object_id, to_quantity
from variant_inventory.models.product import VariantSlot, VariantStockView
from variant_inventory.schemas.reconciliation import (
    InventoryDiagnosisReport,
    ProductStockDiagnosis,
    ReconciliationDetail,
    ReconciliationReport,
    SizeStockSummary,
)

logger = logging.getLogger(__name__)

BACKFILL = "backfill"
SYNC = "sync"
ALL = "all"


class ReconciliationService:
    """Scan-then-write repair passes over the products collection."""

    def __init__(self, db: AsyncIOMotorDatabase, settings: Settings = None):
        self.settings = settings or get_settings()
        self.products = db[self.settings.PRODUCTS_COLLECTION]

    def _query(self, product_id: Optional[str]) -> Dict[str, Any]:
        query: Dict[str, Any] = {"deleted": {"$ne": True}}
        if product_id:
            query["_id"] = parse_object_id(product_id)
        return query

    def _view(self, product: Dict[str, Any]) -> VariantStockView:
        return VariantStockView(product, self.settings.DEFAULT_COLOR_LABEL)

    # ------------------------------------------------------------------
    # Structure backfill
    # ------------------------------------------------------------------

    async def run_structure_backfill(self, product_id: Optional[str] = None, dry_run: bool = False) -> ReconciliationReport:
        """
        Fill in whichever stock structure a product is missing.

        - sizeVariants only: build ``inventory`` from it
        - inventory only: build ``sizeVariants`` from it
        - neither: seed both from legacy ``variants`` or ``selectedSizes``;
          quantities that are absent default to DEFAULT_SEED_STOCK
        - inventory present but ``total`` missing or stale: recompute total
        """
        report = ReconciliationReport(dry_run=dry_run)
        try:
            query = self._query(product_id)
        except InvalidIdentifierError as e:
            report.errors.append(e.message)
            report.error_code = e.code
            return report

        cursor = self.products.find(query)
        async for product in cursor:
            report.processed += 1
            try:
                plan = self._plan_backfill(product)
                if not plan:
                    continue
                detail = ReconciliationDetail(
                    product_id=str(product["_id"]),
                    name=self._view(product).title,
                    updates=sorted(plan["set"].keys()),
                    reason=plan["reason"],
                )
                if not dry_run:
                    result = await self.products.update_one(plan["filter"], {"$set": plan["set"]})
                    if result.matched_count == 0:
                        logger.warning(f"Product {product['_id']} changed during backfill; skipped")
                        continue
                    logger.info(f"Backfilled product {product['_id']}: {detail.reason}")
                report.updated += 1
                report.details.append(detail)
            except PyMongoError as e:
                logger.error(f"Error fixing product {product.get('_id')}: {str(e)}")
                report.errors.append(f"Error fixing product {product.get('_id')}: {str(e)}")

        logger.info(f"Structure backfill processed {report.processed} products, updated {report.updated}")
        return report

    def _plan_backfill(self, product: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        view = self._view(product)
        guard: Dict[str, Any] = {"_id": product["_id"]}

        if view.has_size_variants and not view.has_inventory:
            slots = list(view.size_variant_slots())
            if not slots:
                return None
            guard["inventory.variants.0"] = {"$exists": False}
            return {
                "filter": guard,
                "set": {"inventory": view.build_inventory(slots)},
                "reason": "inventory derived from sizeVariants",
            }

        if view.has_inventory and not view.has_size_variants:
            slots = list(view.inventory_slots())
            if not slots:
                return None
            guard["sizeVariants.0"] = {"$exists": False}
            updates: Dict[str, Any] = {"sizeVariants": view.build_size_variants(slots)}
            if view.total_is_stale() or view.stored_inventory_total is None:
                updates["inventory.total"] = view.total(StockSource.INVENTORY)
            return {"filter": guard, "set": updates, "reason": "sizeVariants derived from inventory"}

        if not view.has_size_variants and not view.has_inventory:
            slots = self._seed_slots(product)
            if not slots:
                return None
            guard["sizeVariants.0"] = {"$exists": False}
            guard["inventory.variants.0"] = {"$exists": False}
            return {
                "filter": guard,
                "set": {
                    "sizeVariants": view.build_size_variants(slots),
                    "inventory": view.build_inventory(slots),
                },
                "reason": "both structures seeded from legacy fields",
            }

        if view.total_is_stale() or view.stored_inventory_total is None:
            guard["inventory.total"] = product["inventory"].get("total")
            return {
                "filter": guard,
                "set": {"inventory.total": view.total(StockSource.INVENTORY)},
                "reason": "inventory.total recomputed from inventory.variants",
            }
        return None

    def _seed_slots(self, product: Dict[str, Any]) -> List[VariantSlot]:
        """Slots for a product with neither structure, taken from legacy fields."""
        seed = self.settings.DEFAULT_SEED_STOCK
        default_color = product.get("color") or self.settings.DEFAULT_COLOR_LABEL
        slots = []

        variants = product.get("variants")
        if isinstance(variants, list) and variants:
            for index, entry in enumerate(variants):
                if not isinstance(entry, dict) or not entry.get("size"):
                    continue
                quantity = entry.get("quantity")
                slots.append(VariantSlot(
                    source=StockSource.LEGACY_VARIANTS,
                    size=entry["size"],
                    color=entry.get("color") or default_color,
                    quantity=seed if quantity is None else to_quantity(quantity),
                    index=index,
                ))
            return slots

        sizes = product.get("selectedSizes")
        if isinstance(sizes, list):
            for size in sizes:
                if not size:
                    continue
                slots.append(VariantSlot(
                    source=StockSource.LEGACY_VARIANTS,
                    size=str(size),
                    color=default_color,
                    quantity=seed,
                ))
        return slots

    # ------------------------------------------------------------------
    # Cross-structure sync
    # ------------------------------------------------------------------

    async def run_cross_structure_sync(self, product_id: Optional[str] = None, dry_run: bool = False) -> ReconciliationReport:
        """
        Overwrite ``sizeVariants`` stock with ``inventory.variants`` quantities
        wherever the two disagree for the same size/color.

        Order processing writes both structures but catalog edits may only touch
        sizeVariants, so the inventory cache is the one treated as authoritative.
        Keys present in only one structure are left alone.
        """
        report = ReconciliationReport(dry_run=dry_run)
        try:
            query = self._query(product_id)
        except InvalidIdentifierError as e:
            report.errors.append(e.message)
            report.error_code = e.code
            return report
        query["sizeVariants"] = {"$type": "array"}
        query["inventory.variants"] = {"$type": "array"}

        cursor = self.products.find(query)
        async for product in cursor:
            report.processed += 1
            try:
                view = self._view(product)
                cached = view.stock_map(StockSource.INVENTORY)
                guard: Dict[str, Any] = {"_id": product["_id"]}
                updates: Dict[str, Any] = {}
                mismatches = []

                for slot in view.size_variant_slots():
                    key = slot.key(self.settings.DEFAULT_COLOR_LABEL)
                    if key not in cached or cached[key] == slot.quantity:
                        continue
                    raw = product["sizeVariants"][slot.size_index]["colorVariants"][slot.color_index]
                    guard[slot.field_path] = raw.get("stock")
                    updates[slot.field_path] = cached[key]
                    mismatches.append(f"{key[0]}:{key[1]} sizeVariants={slot.quantity} inventory={cached[key]}")
                    logger.debug(f"Inconsistency found on {product['_id']}: {mismatches[-1]}")

                if not updates:
                    continue
                detail = ReconciliationDetail(
                    product_id=str(product["_id"]),
                    name=view.title,
                    updates=["sizeVariants"],
                    reason="sizeVariants stock overwritten from inventory.variants",
                    mismatches=mismatches,
                )
                if not dry_run:
                    result = await self.products.update_one(guard, {"$set": updates})
                    if result.matched_count == 0:
                        logger.warning(f"Product {product['_id']} changed during cross-structure sync; skipped")
                        continue
                    logger.info(f"Synced {len(updates)} sizeVariants slots on product {product['_id']}")
                report.updated += 1
                report.details.append(detail)
            except PyMongoError as e:
                logger.error(f"Error syncing product {product.get('_id')}: {str(e)}")
                report.errors.append(f"Error syncing product {product.get('_id')}: {str(e)}")

        logger.info(f"Cross-structure sync processed {report.processed} products, updated {report.updated}")
        return report

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def diagnose(self, product_id: Optional[str] = None) -> InventoryDiagnosisReport:
        """Read-only summary of each product's stock and where its structures disagree."""
        report = InventoryDiagnosisReport()
        cursor = self.products.find(self._query(product_id))
        async for product in cursor:
            view = self._view(product)
            source = view.authoritative_source
            diagnosis = ProductStockDiagnosis(
                id=str(product["_id"]),
                title=view.title,
                source=source.value if source else None,
                stored_inventory_total=view.stored_inventory_total,
                total_is_stale=view.total_is_stale(),
            )
            if source is not None:
                slots = view.slots(source)
                diagnosis.variant_count = len(slots)
                diagnosis.total_stock = sum(slot.quantity for slot in slots)
                for slot in slots:
                    if not slot.size:
                        continue
                    summary = diagnosis.by_size_stock.setdefault(str(slot.size), SizeStockSummary())
                    summary.total += slot.quantity
                    color = slot.color or self.settings.DEFAULT_COLOR_LABEL
                    summary.by_color[color] = summary.by_color.get(color, 0) + slot.quantity
                diagnosis.has_duplicate_sizes = bool(view.duplicate_keys(source))

            diagnosis.divergent_variants = [f"{size}:{color}" for size, color in view.divergent_keys()]
            if view.has_size_variants and not view.has_inventory:
                diagnosis.missing_structures.append(StockSource.INVENTORY.value)
            if view.has_inventory and not view.has_size_variants:
                diagnosis.missing_structures.append(StockSource.SIZE_VARIANTS.value)

            if (diagnosis.divergent_variants or diagnosis.total_is_stale
                    or diagnosis.missing_structures or diagnosis.has_duplicate_sizes):
                report.inconsistent_products += 1
            report.summary.append(diagnosis)

        report.total_products = len(report.summary)
        return report


async def process_reconciliation(
    db: AsyncIOMotorDatabase,
    mode: str = ALL,
    product_id: Optional[str] = None,
    dry_run: bool = False,
    settings: Settings = None,
) -> Dict[str, ReconciliationReport]:
    """
    Common reconciliation entry point for all interfaces.

    Args:
        db: Mongo database
        mode: 'backfill', 'sync' or 'all' (backfill first, then sync)
        product_id: Restrict the run to one product
        dry_run: Report what would change without writing

    Returns:
        Reports keyed by pass name
    """
    service = ReconciliationService(db, settings)
    reports: Dict[str, ReconciliationReport] = {}
    if mode in (BACKFILL, ALL):
        reports[BACKFILL] = await service.run_structure_backfill(product_id, dry_run=dry_run)
    if mode in (SYNC, ALL):
        reports[SYNC] = await service.run_cross_structure_sync(product_id, dry_run=dry_run)
    return reports
