"""
Inventory Service

Applies order-driven stock decrements to product documents:
- ``reduce_inventory`` decrements one size/color slot, idempotently per transactionId
- ``update_inventory_from_order`` runs ``reduce_inventory`` for every line item
  of an order and flags the items it applied

A product may hold the same variant in ``sizeVariants`` and in
``inventory.variants``; both are decremented so they stay in step. Decrements
are clamped at zero and a shortfall is absorbed silently, since order
validation happens upstream.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from variant_inventory.core.config import Settings, get_settings
from variant_inventory.core.enums import AuditStatus, InventoryErrorCode, StockSource
from variant_inventory.core.exceptions import (
    BaseServiceError,
    DatabaseError,
    EmptyOrderError,
    OrderNotFoundError,
    ProductNotFoundError,
    VariantNotFoundError,
)
from variant_inventory.core.utils import (
    build_adhoc_transaction_id,
    build_line_transaction_id,
    build_order_transaction_id,
    parse_object_id,
    to_quantity,
)
from variant_inventory.models.order import OrderLineItem, line_items
from variant_inventory.models.product import VariantSlot, VariantStockView
from variant_inventory.schemas.inventory import (
    ErrorDetail,
    InventoryUpdateRequest,
    InventoryUpdateResult,
    OrderInventoryResult,
)
from variant_inventory.services.audit_ledger import InventoryAuditLedger

logger = logging.getLogger(__name__)


@dataclass
class SlotDecrement:
    source: StockSource
    previous_quantity: int
    new_quantity: int
    amount: int


@dataclass
class DecrementOutcome:
    primary: Optional[SlotDecrement] = None
    secondary: Optional[SlotDecrement] = None

    @property
    def applied(self) -> bool:
        return self.primary is not None or self.secondary is not None

    @property
    def reported(self) -> SlotDecrement:
        """sizeVariants numbers when that path ran, otherwise the inventory cache numbers."""
        return self.primary or self.secondary

    @property
    def sources(self) -> List[StockSource]:
        return [d.source for d in (self.primary, self.secondary) if d is not None]


class InventoryService:
    """
    Stock decrements against the products collection with an idempotency ledger.

    Every public method returns a structured result; domain failures never
    escape as exceptions so callers processing a batch can carry on.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        settings: Settings = None,
        ledger: InventoryAuditLedger = None,
    ):
        self.settings = settings or get_settings()
        self.products = db[self.settings.PRODUCTS_COLLECTION]
        self.orders = db[self.settings.ORDERS_COLLECTION]
        self.ledger = ledger or InventoryAuditLedger(db[self.settings.AUDIT_COLLECTION])

    # ------------------------------------------------------------------
    # Single variant
    # ------------------------------------------------------------------

    async def reduce_inventory(self, request: InventoryUpdateRequest) -> InventoryUpdateResult:
        """
        Decrement one size/color slot by ``min(quantity, available)``.

        The transactionId is claimed in the ledger before stock is touched. A
        key that was already claimed replays the stored result, including a
        stored failure: callers that want a real retry must mint a new key.
        A call interrupted after claiming is still finalised, as a failure.
        """
        transaction_id = request.transaction_id or build_adhoc_transaction_id()
        result = InventoryUpdateResult(
            product_id=request.product_id,
            size=request.size,
            color=request.color,
            transaction_id=transaction_id,
            timestamp=datetime.now(timezone.utc),
        )

        claim = await self.ledger.claim(
            transaction_id, request.product_id, request.size, request.color, request.quantity
        )
        if not claim.acquired:
            return self._replay(claim.existing, result)
        if not claim.durable:
            logger.warning(f"Ledger unavailable; tx {transaction_id} proceeds without a replay record")

        try:
            outcome = await self._apply_decrement(
                request.product_id, request.size, request.color, request.quantity
            )
            reported = outcome.reported
            result.previous_quantity = reported.previous_quantity
            result.new_quantity = reported.new_quantity
            result.updated_sources = outcome.sources
            result.success = True
            logger.info(
                f"Reduced stock for {request.product_id} {request.size}/{request.color}: "
                f"{reported.previous_quantity} -> {reported.new_quantity} "
                f"via {', '.join(s.value for s in outcome.sources)} (tx {transaction_id})"
            )
        except BaseServiceError as e:
            result.error = e.message
            result.error_code = e.code
            logger.warning(f"Inventory reduction failed for tx {transaction_id}: {e.message}")
        except PyMongoError as e:
            result.error = f"Error updating inventory: {str(e)}"
            result.error_code = InventoryErrorCode.STORAGE_ERROR
            logger.error(f"Storage error while reducing inventory for tx {transaction_id}: {str(e)}")
        finally:
            if not result.success and result.error is None:
                result.error = "Inventory update interrupted before completion"
                result.error_code = InventoryErrorCode.STORAGE_ERROR
                logger.error(f"Inventory reduction for tx {transaction_id} was interrupted")
            await self.ledger.record_outcome(
                transaction_id,
                result.previous_quantity,
                result.new_quantity,
                result.success,
                error=result.error,
                error_code=result.error_code.value if result.error_code else None,
                sources=[s.value for s in result.updated_sources],
                product_id=request.product_id,
                size=request.size,
                color=request.color,
            )
        return result

    def _replay(self, record: dict, result: InventoryUpdateResult) -> InventoryUpdateResult:
        if record.get("status") == AuditStatus.COMPLETED.value:
            return InventoryUpdateResult.from_audit_record(record)
        # Claimed by a call that has not finished yet: nothing to do here
        result.success = True
        result.replayed = True
        result.error = "Transaction already in progress"
        result.error_code = InventoryErrorCode.DUPLICATE_TRANSACTION
        return result

    async def _apply_decrement(self, product_id: str, size: str, color: str, quantity: int) -> DecrementOutcome:
        """
        Decrement the sizeVariants slot (primary) and the inventory.variants
        slot (secondary) for the same size/color.

        Both writes are guarded so a concurrent writer makes them match
        nothing instead of driving stock negative; the product is then re-read
        and the pending path retried, up to MAX_DECREMENT_ATTEMPTS.
        """
        oid = parse_object_id(product_id)
        outcome = DecrementOutcome()
        primary_pending = True
        secondary_pending = True

        for attempt in range(max(1, self.settings.MAX_DECREMENT_ATTEMPTS)):
            product = await self.products.find_one({"_id": oid})
            if product is None:
                raise ProductNotFoundError("Product not found")
            view = VariantStockView(product, self.settings.DEFAULT_COLOR_LABEL)

            if primary_pending:
                slot = view.find_size_variant_slot(size, color)
                if slot is None:
                    primary_pending = False
                else:
                    decrement = await self._decrement_size_variant(oid, slot, quantity)
                    if decrement is not None:
                        outcome.primary = decrement
                        primary_pending = False

            if not primary_pending and secondary_pending:
                slot = view.find_inventory_slot(size, color)
                if slot is None:
                    secondary_pending = False
                else:
                    wanted = outcome.primary.amount if outcome.primary else quantity
                    decrement = await self._decrement_inventory_variant(oid, view, slot, wanted)
                    if decrement is not None:
                        outcome.secondary = decrement
                        secondary_pending = False

            if not primary_pending and not secondary_pending:
                break
            logger.debug(f"Stock for {product_id} {size}/{color} moved during attempt {attempt + 1}; retrying")

        if outcome.applied:
            if primary_pending or secondary_pending:
                logger.warning(
                    f"Only part of the stock structures for {product_id} {size}/{color} were decremented; "
                    f"run the cross-structure sync to realign"
                )
            return outcome
        if primary_pending or secondary_pending:
            raise DatabaseError("Inventory slot kept changing concurrently; decrement not applied")
        raise VariantNotFoundError("Failed to update inventory - variant not found")

    async def _decrement_size_variant(self, oid, slot: VariantSlot, quantity: int) -> Optional[SlotDecrement]:
        """
        Relative ``$inc`` on the slot at ``sizeVariants.{i}.colorVariants.{j}.stock``.

        The filter pins that position's size and color, so only the first
        matching entry is charged even when a product repeats a size or color,
        and the ``$gte`` guard keeps it from crossing zero. Returns None when
        the guard no longer holds.
        """
        amount = min(quantity, slot.quantity)
        if amount <= 0:
            return SlotDecrement(StockSource.SIZE_VARIANTS, slot.quantity, slot.quantity, 0)

        size_path = f"sizeVariants.{slot.size_index}"
        color_path = f"{size_path}.colorVariants.{slot.color_index}"
        updated = await self.products.find_one_and_update(
            {
                "_id": oid,
                f"{size_path}.size": slot.size,
                f"{color_path}.color": slot.color,
                slot.field_path: {"$gte": amount},
            },
            {"$inc": {slot.field_path: -amount}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            return None

        color_variant = updated["sizeVariants"][slot.size_index]["colorVariants"][slot.color_index]
        new_quantity = to_quantity(color_variant.get("stock"))
        return SlotDecrement(StockSource.SIZE_VARIANTS, new_quantity + amount, new_quantity, amount)

    async def _decrement_inventory_variant(
        self, oid, view: VariantStockView, slot: VariantSlot, wanted: int
    ) -> Optional[SlotDecrement]:
        """
        Compare-and-set the inventory.variants slot and inventory.total in one
        update command.

        The filter pins the slot's quantity and the stored total to what was
        read, so a concurrent decrement on a sibling variant makes this update
        miss (and retry) instead of writing a total computed from stale data.
        """
        amount = min(wanted, slot.quantity)
        if amount <= 0:
            return SlotDecrement(StockSource.INVENTORY, slot.quantity, slot.quantity, 0)

        raw_inventory = view.product["inventory"]
        raw_variant = raw_inventory["variants"][slot.index]
        path = f"inventory.variants.{slot.index}"
        new_quantity = slot.quantity - amount
        new_total = view.total(StockSource.INVENTORY) - amount

        update_result = await self.products.update_one(
            {
                "_id": oid,
                f"{path}.size": raw_variant.get("size"),
                f"{path}.color": raw_variant.get("color"),
                f"{path}.quantity": raw_variant.get("quantity"),
                "inventory.total": raw_inventory.get("total"),
            },
            {"$set": {f"{path}.quantity": new_quantity, "inventory.total": new_total}},
        )
        if update_result.matched_count == 0:
            return None
        return SlotDecrement(StockSource.INVENTORY, slot.quantity, new_quantity, amount)

    # ------------------------------------------------------------------
    # Whole order
    # ------------------------------------------------------------------

    async def update_inventory_from_order(self, order_id: str, force_update: bool = False) -> OrderInventoryResult:
        """
        Apply ``reduce_inventory`` to every line item not yet flagged
        ``inventoryUpdated`` (all items when ``force_update``).

        Line transaction ids are ``<order tx>_<productId>_<size>_<color>``, so a
        product/size/color repeated within one order is charged once.
        """
        try:
            oid = parse_object_id(order_id, kind="order")
            order = await self.orders.find_one({"_id": oid})
            if order is None:
                raise OrderNotFoundError("Order not found")
            items = line_items(order)
            if not items:
                raise EmptyOrderError("Order has no products")
        except BaseServiceError as e:
            return OrderInventoryResult(order_id=order_id, success=False, error=e.message, error_code=e.code)
        except PyMongoError as e:
            logger.error(f"Failed to load order {order_id}: {str(e)}")
            return OrderInventoryResult(
                order_id=order_id,
                success=False,
                error=f"Failed to update inventory: {str(e)}",
                error_code=InventoryErrorCode.STORAGE_ERROR,
            )

        order_transaction_id = build_order_transaction_id(order_id, force_update)
        report = OrderInventoryResult(order_id=order_id, transaction_id=order_transaction_id)
        applied_items: List[OrderLineItem] = []

        for item in items:
            if item.inventory_updated and not force_update:
                report.skipped += 1
                continue

            if not item.product_id:
                report.errors.append(ErrorDetail(
                    error="Missing product ID for order item",
                    error_code=InventoryErrorCode.MISSING_PRODUCT_ID,
                ))
                continue

            try:
                result = await self.reduce_inventory(InventoryUpdateRequest(
                    product_id=item.product_id,
                    size=item.size,
                    color=item.color,
                    quantity=item.quantity,
                    transaction_id=build_line_transaction_id(
                        order_transaction_id, item.product_id, item.size, item.color
                    ),
                ))
            except (BaseServiceError, PyMongoError) as e:
                logger.error(f"Unexpected error reducing inventory for order {order_id} item {item.position}: {e}")
                report.errors.append(ErrorDetail(
                    product_id=item.product_id,
                    size=item.size,
                    color=item.color,
                    error=str(e),
                    error_code=InventoryErrorCode.STORAGE_ERROR,
                ))
                continue

            if result.replayed and result.error_code == InventoryErrorCode.DUPLICATE_TRANSACTION:
                # Another run holds the claim and flags the line itself once it finishes
                logger.warning(
                    f"Order {order_id} line {item.position} is already being applied by {result.transaction_id}; "
                    f"left unflagged"
                )
                report.skipped += 1
                continue

            if result.success:
                report.results.append(result)
                applied_items.append(item)
            else:
                report.errors.append(ErrorDetail(
                    product_id=item.product_id,
                    size=item.size,
                    color=item.color,
                    error=result.error or "Inventory update failed",
                    error_code=result.error_code,
                ))

        if applied_items:
            await self._flag_applied_items(oid, order_id, applied_items, report)

        report.success = len(report.errors) == 0
        logger.info(
            f"Order {order_id} inventory update: {len(report.results)} applied, "
            f"{report.skipped} skipped, {len(report.errors)} errors"
        )
        return report

    async def _flag_applied_items(
        self, oid, order_id: str, items: List[OrderLineItem], report: OrderInventoryResult
    ):
        """
        Set ``inventoryUpdated`` on each applied line item with its own targeted
        update, then stamp ``inventoryUpdatedAt``. Concurrent runs over the same
        order therefore cannot clobber each other's flags.
        """
        try:
            for item in items:
                result = await self.orders.update_one(
                    {"_id": oid, **item.guard},
                    {"$set": {item.flag_path: True}},
                )
                if result.matched_count == 0:
                    logger.warning(
                        f"Order {order_id} line {item.position} no longer holds product {item.product_id}; "
                        f"inventoryUpdated not set"
                    )
            await self.orders.update_one(
                {"_id": oid},
                {"$set": {"inventoryUpdatedAt": datetime.now(timezone.utc)}},
            )
        except PyMongoError as e:
            logger.error(f"Failed to flag inventory-updated items on order {order_id}: {str(e)}")
            report.errors.append(ErrorDetail(
                error=f"Stock reduced but order flags not saved: {str(e)}",
                error_code=InventoryErrorCode.STORAGE_ERROR,
            ))

