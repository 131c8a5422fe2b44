"""
Schemas for stock lookups used by storefront queries.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from variant_inventory.core.enums import InventoryErrorCode
from variant_inventory.schemas.base import CamelModel


class VariantAvailability(CamelModel):
    size: str
    color: str
    quantity: int = 0
    available: bool = False


class ProductInventory(CamelModel):
    product_id: str
    title: Optional[str] = None
    source: Optional[str] = None
    total: int = 0
    inventory: List[VariantAvailability] = Field(default_factory=list)


class ColorStock(CamelModel):
    color: str
    stock: int = 0


class SizeStock(CamelModel):
    size: str
    colors: List[ColorStock] = Field(default_factory=list)


class ProductStockSnapshot(CamelModel):
    product_id: str
    title: Optional[str] = None
    last_updated: Optional[datetime] = None
    variants: List[SizeStock] = Field(default_factory=list)
    total_stock: int = 0


class StockSnapshot(CamelModel):
    products: List[ProductStockSnapshot] = Field(default_factory=list)
    missing_product_ids: List[str] = Field(default_factory=list)
    timestamp: datetime


class StockValidationItem(CamelModel):
    """A cart line to check; fields stay optional so incomplete lines are reported, not rejected."""
    product_id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = 0


class StockValidationRequest(CamelModel):
    items: List[StockValidationItem] = Field(default_factory=list)


class ValidStockItem(StockValidationItem):
    available: int = 0
    status: str = "valid"


class InvalidStockItem(CamelModel):
    item: StockValidationItem
    error: str
    error_code: Optional[InventoryErrorCode] = None
    available: Optional[int] = None
    requested: Optional[int] = None


class StockValidationReport(CamelModel):
    valid: bool = True
    valid_items: List[ValidStockItem] = Field(default_factory=list)
    invalid_items: List[InvalidStockItem] = Field(default_factory=list)
