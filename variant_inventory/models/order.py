# variant_inventory/models/order.py

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class OrderLineItem:
    """
    A normalised order line.

    Order documents are written by several storefront versions, so the product
    id may live under ``productId`` or ``id`` and the color under ``color`` or
    ``variant``.
    """
    position: int
    product_id: Optional[str]
    size: str
    color: str
    quantity: int
    inventory_updated: bool
    id_field: str = "productId"
    raw_product_id: Any = None

    @classmethod
    def from_document(cls, position: int, item: Dict[str, Any]) -> "OrderLineItem":
        id_field = "productId" if item.get("productId") else "id"
        raw_product_id = item.get(id_field)
        quantity = item.get("quantity") or 1
        try:
            quantity = max(0, int(quantity))
        except (TypeError, ValueError):
            quantity = 1
        return cls(
            position=position,
            product_id=str(raw_product_id) if raw_product_id else None,
            size=item.get("size") or "default",
            color=item.get("color") or item.get("variant") or "default",
            quantity=quantity,
            inventory_updated=bool(item.get("inventoryUpdated")),
            id_field=id_field,
            raw_product_id=raw_product_id,
        )

    @property
    def flag_path(self) -> str:
        return f"products.{self.position}.inventoryUpdated"

    @property
    def guard(self) -> Dict[str, Any]:
        """Filter fragment pinning this position to the same product."""
        return {f"products.{self.position}.{self.id_field}": self.raw_product_id}


def line_items(order: Dict[str, Any]) -> List[OrderLineItem]:
    products = order.get("products")
    if not isinstance(products, list):
        return []
    return [
        OrderLineItem.from_document(position, item)
        for position, item in enumerate(products)
        if isinstance(item, dict)
    ]
