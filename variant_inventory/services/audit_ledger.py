# variant_inventory/services/audit_ledger.py
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from variant_inventory.models.inventory_audit import outcome_fields, pending_record

logger = logging.getLogger(__name__)


class LedgerClaim:
    """Result of trying to claim a transactionId in the ledger."""

    def __init__(self, acquired: bool, existing: Optional[Dict[str, Any]] = None, durable: bool = True):
        self.acquired = acquired
        self.existing = existing
        # False when the ledger itself could not be written; the mutation still proceeds
        self.durable = durable


class InventoryAuditLedger:
    """
    Append-only ledger of stock mutations keyed by transactionId.

    Every decrement is claimed here before stock is touched. The unique index
    on ``transactionId`` makes the claim an insert-or-detect-conflict, so two
    deliveries of the same order trigger cannot both decrement stock.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def find(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"transactionId": transaction_id})

    async def claim(
        self,
        transaction_id: str,
        product_id: str,
        size: str,
        color: str,
        quantity: int,
    ) -> LedgerClaim:
        """
        Insert a pending record for ``transaction_id``.

        Returns a claim with ``acquired=False`` and the stored record when the
        key already exists. Ledger outages are logged and reported as a
        non-durable claim rather than raised.
        """
        record = pending_record(transaction_id, product_id, size, color, quantity)
        try:
            await self.collection.insert_one(record)
            return LedgerClaim(acquired=True)
        except DuplicateKeyError:
            existing = await self.find(transaction_id)
            logger.warning(f"Duplicate transaction detected: {transaction_id}")
            return LedgerClaim(acquired=False, existing=existing or {"transactionId": transaction_id})
        except PyMongoError as e:
            logger.error(f"Failed to claim inventory transaction {transaction_id}: {str(e)}")
            return LedgerClaim(acquired=True, durable=False)

    async def record_outcome(
        self,
        transaction_id: str,
        previous_quantity: int,
        new_quantity: int,
        success: bool,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
        sources: Optional[list] = None,
        product_id: Optional[str] = None,
        size: Optional[str] = None,
        color: Optional[str] = None,
    ) -> bool:
        """
        Finalise a claimed transaction. Failures are recorded too, so a retry
        with the same key replays the failure instead of re-attempting.

        Write errors are logged and swallowed: the ledger is best-effort
        observability and must not turn a completed mutation into a failure.
        """
        fields = outcome_fields(previous_quantity, new_quantity, success, error, error_code, sources)
        insert_fields = {k: v for k, v in (("productId", product_id), ("size", size), ("color", color)) if v is not None}
        try:
            await self.collection.update_one(
                {"transactionId": transaction_id},
                {"$set": fields, "$setOnInsert": insert_fields},
                upsert=True,
            )
            logger.info(
                f"Inventory change logged: {product_id}, {size}, {color}, "
                f"from {previous_quantity} to {new_quantity} (success={success})"
            )
            return True
        except PyMongoError as e:
            logger.error(f"Error logging inventory change {transaction_id}: {str(e)}")
            return False

    async def history(self, product_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent ledger entries for a product."""
        cursor = self.collection.find({"productId": product_id}).sort("timestamp", DESCENDING).limit(limit)
        return await cursor.to_list(length=limit)
