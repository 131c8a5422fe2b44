"""
Shared enums and constants used across the application.
"""

from enum import Enum


class InventoryErrorCode(str, Enum):
    """Error codes carried by structured inventory results"""
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    EMPTY_ORDER = "EMPTY_ORDER"
    VARIANT_NOT_FOUND = "VARIANT_NOT_FOUND"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    MISSING_PRODUCT_ID = "MISSING_PRODUCT_ID"
    MISSING_FIELDS = "MISSING_FIELDS"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    STORAGE_ERROR = "STORAGE_ERROR"


class StockSource(str, Enum):
    """Which stock representation on a product document is being read or written"""
    SIZE_VARIANTS = "sizeVariants"
    INVENTORY = "inventory"
    LEGACY_VARIANTS = "variants"


class AuditStatus(str, Enum):
    """Lifecycle of a ledger entry keyed by transactionId"""
    PENDING = "pending"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
