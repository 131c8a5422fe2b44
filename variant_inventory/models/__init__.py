from .product import VariantStockView, VariantSlot, stock_key
from .order import OrderLineItem, line_items
from .inventory_audit import pending_record, outcome_fields
