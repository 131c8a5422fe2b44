"""
Schemas for the out-of-band reconciliation jobs and diagnostics.
"""

from typing import Dict, List, Optional

from pydantic import Field

from variant_inventory.core.enums import InventoryErrorCode
from variant_inventory.schemas.base import CamelModel


class ReconciliationDetail(CamelModel):
    product_id: str
    name: Optional[str] = None
    updates: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    mismatches: List[str] = Field(default_factory=list)


class ReconciliationReport(CamelModel):
    processed: int = 0
    updated: int = 0
    dry_run: bool = False
    details: List[ReconciliationDetail] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    error_code: Optional[InventoryErrorCode] = None


class SizeStockSummary(CamelModel):
    total: int = 0
    by_color: Dict[str, int] = Field(default_factory=dict)


class ProductStockDiagnosis(CamelModel):
    id: str
    title: Optional[str] = None
    source: Optional[str] = None
    variant_count: int = 0
    total_stock: int = 0
    stored_inventory_total: Optional[int] = None
    by_size_stock: Dict[str, SizeStockSummary] = Field(default_factory=dict)
    has_duplicate_sizes: bool = False
    divergent_variants: List[str] = Field(default_factory=list)
    total_is_stale: bool = False
    missing_structures: List[str] = Field(default_factory=list)


class InventoryDiagnosisReport(CamelModel):
    total_products: int = 0
    inconsistent_products: int = 0
    summary: List[ProductStockDiagnosis] = Field(default_factory=list)
