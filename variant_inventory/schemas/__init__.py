from .base import CamelModel
from .inventory import (
    InventoryUpdateRequest,
    InventoryUpdateResult,
    ErrorDetail,
    OrderInventoryRequest,
    OrderInventoryResult,
    OrderSyncReport,
)
from .reconciliation import (
    ReconciliationDetail,
    ReconciliationReport,
    ProductStockDiagnosis,
    InventoryDiagnosisReport,
)
from .stock import (
    VariantAvailability,
    ProductInventory,
    ProductStockSnapshot,
    StockSnapshot,
    StockValidationItem,
    StockValidationRequest,
    StockValidationReport,
)
