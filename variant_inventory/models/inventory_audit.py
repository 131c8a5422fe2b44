# variant_inventory/models/inventory_audit.py

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from variant_inventory.core.enums import AuditStatus


def pending_record(transaction_id: str, product_id: str, size: str, color: str, quantity: int) -> Dict[str, Any]:
    """
    Ledger claim written before the stock mutation.

    The unique index on ``transactionId`` turns a second claim for the same key
    into a DuplicateKeyError.
    """
    now = datetime.now(timezone.utc)
    return {
        "transactionId": transaction_id,
        "productId": product_id,
        "size": size,
        "color": color,
        "requestedQuantity": quantity,
        "previousQuantity": 0,
        "newQuantity": 0,
        "success": False,
        "error": None,
        "errorCode": None,
        "status": AuditStatus.PENDING.value,
        "timestamp": now,
        "createdAt": now,
    }


def outcome_fields(
    previous_quantity: int,
    new_quantity: int,
    success: bool,
    error: Optional[str] = None,
    error_code: Optional[str] = None,
    sources: Optional[list] = None,
) -> Dict[str, Any]:
    return {
        "previousQuantity": previous_quantity,
        "newQuantity": new_quantity,
        "success": success,
        "error": error,
        "errorCode": error_code,
        "updatedSources": sources or [],
        "status": AuditStatus.COMPLETED.value,
        "timestamp": datetime.now(timezone.utc),
    }
