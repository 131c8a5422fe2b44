"""
Core module exports.
"""
from .enums import (
    InventoryErrorCode,
    StockSource,
    AuditStatus,
    OrderStatus
)

from .exceptions import (
    BaseServiceError,
    InventoryServiceError,
    ProductNotFoundError,
    OrderNotFoundError,
    EmptyOrderError,
    VariantNotFoundError,
    InvalidIdentifierError,
    DatabaseError
)

from .utils import (
    parse_object_id,
    build_line_transaction_id,
    build_order_transaction_id,
    build_adhoc_transaction_id,
    to_quantity
)
