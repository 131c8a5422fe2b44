"""
Order Inventory Processor

Batch pass that catches up on orders whose stock was never applied:
- Orders in a fulfilment status (processing, shipped, delivered by default)
- Pending orders created within the lookback window

Only orders with at least one line item not yet flagged ``inventoryUpdated``
are sent through ``InventoryService.update_inventory_from_order``. The flag
and the transaction ledger together prevent double-counting when the pass is
run repeatedly.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from pymongo.errors import PyMongoError

from variant_inventory.core.enums import InventoryErrorCode, OrderStatus
from variant_inventory.models.order import line_items
from variant_inventory.schemas.inventory import ErrorDetail, OrderSyncReport
from variant_inventory.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class OrderInventoryProcessor:
    """Runs the order-level inventory update over every order still owing stock."""

    def __init__(self, inventory_service: InventoryService):
        self.inventory_service = inventory_service
        self.settings = inventory_service.settings
        self.orders = inventory_service.orders

    def _candidate_query(self) -> Dict[str, Any]:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=self.settings.PENDING_ORDER_LOOKBACK_HOURS)
        return {
            "deleted": {"$ne": True},
            "$or": [
                {"status": {"$in": self.settings.order_sync_statuses}},
                {"status": OrderStatus.PENDING.value, "createdAt": {"$gt": cutoff}},
            ],
        }

    async def sync_pending_orders(self, dry_run: bool = False) -> OrderSyncReport:
        """
        Apply stock for every candidate order with unflagged line items.

        A failing order is recorded in ``failures`` and the pass moves on.
        """
        report = OrderSyncReport()
        pending = []

        cursor = self.orders.find(self._candidate_query())
        async for order in cursor:
            report.orders_total += 1
            unflagged = [item for item in line_items(order) if not item.inventory_updated]
            if unflagged:
                report.products_needing_updates += len(unflagged)
                pending.append(str(order["_id"]))

        report.orders_needing_updates = len(pending)
        logger.info(
            f"Found {report.orders_total} candidate orders, {len(pending)} needing inventory updates"
        )
        if dry_run:
            return report

        for order_id in pending:
            try:
                result = await self.inventory_service.update_inventory_from_order(order_id)
            except PyMongoError as e:
                logger.error(f"Error processing order {order_id}: {str(e)}")
                report.failures.append(ErrorDetail(
                    error=f"Order {order_id}: {str(e)}",
                    error_code=InventoryErrorCode.STORAGE_ERROR,
                ))
                continue

            report.products_updated += len(result.results)
            if result.results:
                report.orders_updated.append(order_id)
            for error in result.errors:
                report.failures.append(error)
            if result.error:
                report.failures.append(ErrorDetail(error=f"Order {order_id}: {result.error}", error_code=result.error_code))

        logger.info(
            f"Order inventory sync updated {report.products_updated} line items across "
            f"{len(report.orders_updated)} orders"
        )
        return report
