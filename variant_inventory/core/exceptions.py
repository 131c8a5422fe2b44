from variant_inventory.core.enums import InventoryErrorCode


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    code: InventoryErrorCode = InventoryErrorCode.STORAGE_ERROR

    def __init__(self, message: str = "", code: InventoryErrorCode = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

class InventoryServiceError(BaseServiceError):
    """Base exception for inventory service errors."""
    pass

class ProductNotFoundError(InventoryServiceError):
    """Raised when product is not found."""
    code = InventoryErrorCode.PRODUCT_NOT_FOUND

class OrderNotFoundError(InventoryServiceError):
    """Raised when order is not found."""
    code = InventoryErrorCode.ORDER_NOT_FOUND

class EmptyOrderError(InventoryServiceError):
    """Raised when an order carries no line items."""
    code = InventoryErrorCode.EMPTY_ORDER

class VariantNotFoundError(InventoryServiceError):
    """Raised when no size/color slot matches in any stock structure."""
    code = InventoryErrorCode.VARIANT_NOT_FOUND

class InvalidIdentifierError(InventoryServiceError):
    """Raised when an id is not a valid ObjectId."""
    code = InventoryErrorCode.INVALID_IDENTIFIER

class DatabaseError(BaseServiceError):
    """Exception raised for database-related errors."""
    code = InventoryErrorCode.STORAGE_ERROR
