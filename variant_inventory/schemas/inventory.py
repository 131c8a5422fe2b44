"""
Schemas for inventory operations: single-variant decrements and order updates.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from variant_inventory.core.enums import InventoryErrorCode, StockSource
from variant_inventory.schemas.base import CamelModel


class InventoryUpdateRequest(CamelModel):
    product_id: str
    size: str
    color: str
    quantity: int = Field(default=1, ge=0)
    transaction_id: Optional[str] = None

    @field_validator('size', 'color', mode='before')
    @classmethod
    def validate_label(cls, v):
        if v is None or str(v).strip() == '':
            return 'default'
        return str(v)


class InventoryUpdateResult(CamelModel):
    product_id: str
    size: str
    color: str
    previous_quantity: int = 0
    new_quantity: int = 0
    transaction_id: str
    timestamp: Optional[datetime] = None
    success: bool = False
    error: Optional[str] = None
    error_code: Optional[InventoryErrorCode] = None
    updated_sources: List[StockSource] = Field(default_factory=list)
    replayed: bool = False

    @classmethod
    def from_audit_record(cls, record: Dict[str, Any]) -> "InventoryUpdateResult":
        """Rebuild a result from a stored ledger entry (idempotent replay)."""
        return cls(
            product_id=str(record.get("productId")),
            size=record.get("size") or "default",
            color=record.get("color") or "default",
            previous_quantity=record.get("previousQuantity") or 0,
            new_quantity=record.get("newQuantity") or 0,
            transaction_id=record["transactionId"],
            timestamp=record.get("timestamp"),
            success=bool(record.get("success")),
            error=record.get("error"),
            error_code=record.get("errorCode"),
            updated_sources=record.get("updatedSources") or [],
            replayed=True,
        )


class ErrorDetail(CamelModel):
    product_id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    error: str
    error_code: Optional[InventoryErrorCode] = None


class OrderInventoryRequest(CamelModel):
    order_id: str
    force_update: bool = False


class OrderInventoryResult(CamelModel):
    order_id: str
    success: bool = False
    results: List[InventoryUpdateResult] = Field(default_factory=list)
    errors: List[ErrorDetail] = Field(default_factory=list)
    skipped: int = 0
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[InventoryErrorCode] = None


class OrderSyncReport(CamelModel):
    """Outcome of the batch pass over orders whose line items still need stock applied."""
    orders_total: int = 0
    orders_needing_updates: int = 0
    products_needing_updates: int = 0
    products_updated: int = 0
    orders_updated: List[str] = Field(default_factory=list)
    failures: List[ErrorDetail] = Field(default_factory=list)
