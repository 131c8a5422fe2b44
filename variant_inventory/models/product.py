# variant_inventory/models/product.py
"""
Read-side view over the stock representations a product document may carry.

A product can hold stock in up to three shapes at once:

- ``sizeVariants``: ``[{size, colorVariants: [{color, stock}]}]`` (canonical)
- ``inventory``: ``{total, variants: [{size, color, quantity}]}`` (derived cache)
- ``variants``: ``[{size, color, quantity}]`` (legacy flat list)

Services go through ``VariantStockView`` instead of poking at the raw fields so
that no call site has to branch on which shapes happen to be populated.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from variant_inventory.core.enums import StockSource
from variant_inventory.core.utils import to_quantity


@dataclass
class VariantSlot:
    """One size/color stock cell located in a specific structure."""
    source: StockSource
    size: str
    color: Optional[str]
    quantity: int
    index: Optional[int] = None
    size_index: Optional[int] = None
    color_index: Optional[int] = None

    def key(self, default_color: str = "Default") -> Tuple[str, str]:
        return stock_key(self.size, self.color, default_color)

    @property
    def field_path(self) -> str:
        """Positional path to the quantity field of this slot."""
        if self.source == StockSource.SIZE_VARIANTS:
            return f"sizeVariants.{self.size_index}.colorVariants.{self.color_index}.stock"
        if self.source == StockSource.INVENTORY:
            return f"inventory.variants.{self.index}.quantity"
        return f"variants.{self.index}.quantity"


def stock_key(size: Any, color: Any, default_color: str = "Default") -> Tuple[str, str]:
    """Key used to compare the same variant across structures; blank colors collapse to the default label."""
    return (str(size), str(color) if color else default_color)


class VariantStockView:
    """
    Wraps a raw product document and answers stock questions about it.

    The view never mutates the document; writers use the slot positions it
    reports to address guarded updates.
    """

    def __init__(self, product: Dict[str, Any], default_color: str = "Default"):
        self.product = product or {}
        self.default_color = default_color

    @property
    def title(self) -> Optional[str]:
        return self.product.get("title") or self.product.get("name")

    # --- structure presence -------------------------------------------------

    @property
    def has_size_variants(self) -> bool:
        """An empty list counts as absent; the storefront schema defaults sizeVariants to []."""
        size_variants = self.product.get("sizeVariants")
        return isinstance(size_variants, list) and len(size_variants) > 0

    @property
    def has_inventory(self) -> bool:
        inventory = self.product.get("inventory")
        variants = inventory.get("variants") if isinstance(inventory, dict) else None
        return isinstance(variants, list) and len(variants) > 0

    @property
    def has_legacy_variants(self) -> bool:
        variants = self.product.get("variants")
        return isinstance(variants, list) and len(variants) > 0

    @property
    def stored_inventory_total(self) -> Optional[int]:
        inventory = self.product.get("inventory")
        if not isinstance(inventory, dict) or inventory.get("total") is None:
            return None
        return to_quantity(inventory.get("total"))

    # --- slot iteration -----------------------------------------------------

    def size_variant_slots(self) -> Iterator[VariantSlot]:
        if not self.has_size_variants:
            return
        for size_index, size_variant in enumerate(self.product["sizeVariants"]):
            if not isinstance(size_variant, dict):
                continue
            color_variants = size_variant.get("colorVariants")
            if not isinstance(color_variants, list):
                continue
            for color_index, color_variant in enumerate(color_variants):
                if not isinstance(color_variant, dict):
                    continue
                yield VariantSlot(
                    source=StockSource.SIZE_VARIANTS,
                    size=size_variant.get("size"),
                    color=color_variant.get("color"),
                    quantity=to_quantity(color_variant.get("stock")),
                    size_index=size_index,
                    color_index=color_index,
                )

    def inventory_slots(self) -> Iterator[VariantSlot]:
        if not self.has_inventory:
            return
        yield from self._flat_slots(self.product["inventory"]["variants"], StockSource.INVENTORY)

    def legacy_slots(self) -> Iterator[VariantSlot]:
        if not self.has_legacy_variants:
            return
        yield from self._flat_slots(self.product["variants"], StockSource.LEGACY_VARIANTS)

    @staticmethod
    def _flat_slots(entries: List[Any], source: StockSource) -> Iterator[VariantSlot]:
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            yield VariantSlot(
                source=source,
                size=entry.get("size"),
                color=entry.get("color"),
                quantity=to_quantity(entry.get("quantity")),
                index=index,
            )

    def slots(self, source: StockSource) -> List[VariantSlot]:
        if source == StockSource.SIZE_VARIANTS:
            return list(self.size_variant_slots())
        if source == StockSource.INVENTORY:
            return list(self.inventory_slots())
        return list(self.legacy_slots())

    @property
    def authoritative_source(self) -> Optional[StockSource]:
        """sizeVariants wins for size/color granularity, then the inventory cache, then legacy variants."""
        if self.has_size_variants:
            return StockSource.SIZE_VARIANTS
        if self.has_inventory:
            return StockSource.INVENTORY
        if self.has_legacy_variants:
            return StockSource.LEGACY_VARIANTS
        return None

    def authoritative_slots(self) -> List[VariantSlot]:
        source = self.authoritative_source
        return self.slots(source) if source else []

    # --- lookups ------------------------------------------------------------

    def find_size_variant_slot(self, size: str, color: str) -> Optional[VariantSlot]:
        for slot in self.size_variant_slots():
            if slot.size == size and slot.color == color:
                return slot
        return None

    def find_inventory_slot(self, size: str, color: str) -> Optional[VariantSlot]:
        """
        Exact size/color match first; otherwise an untagged entry of the same
        size, which legacy data uses for the default color.
        """
        fallback = None
        for slot in self.inventory_slots():
            if slot.size != size:
                continue
            if slot.color == color:
                return slot
            if not slot.color and fallback is None:
                fallback = slot
        return fallback

    def find_slot(self, size: str, color: str, source: StockSource = None) -> Optional[VariantSlot]:
        source = source or self.authoritative_source
        if source == StockSource.SIZE_VARIANTS:
            return self.find_size_variant_slot(size, color)
        if source == StockSource.INVENTORY:
            return self.find_inventory_slot(size, color)
        if source == StockSource.LEGACY_VARIANTS:
            for slot in self.legacy_slots():
                if slot.size == size and (slot.color == color or not slot.color):
                    return slot
        return None

    # --- aggregates ---------------------------------------------------------

    def total(self, source: StockSource = None) -> int:
        source = source or self.authoritative_source
        if source is None:
            return 0
        return sum(slot.quantity for slot in self.slots(source))

    def stock_map(self, source: StockSource) -> "OrderedDict[Tuple[str, str], int]":
        """Quantities keyed by (size, color); duplicate keys are summed."""
        result: "OrderedDict[Tuple[str, str], int]" = OrderedDict()
        for slot in self.slots(source):
            key = slot.key(self.default_color)
            result[key] = result.get(key, 0) + slot.quantity
        return result

    def duplicate_keys(self, source: StockSource) -> List[Tuple[str, str]]:
        seen = set()
        duplicates = []
        for slot in self.slots(source):
            key = slot.key(self.default_color)
            if key in seen and key not in duplicates:
                duplicates.append(key)
            seen.add(key)
        return duplicates

    def divergent_keys(self) -> List[Tuple[str, str]]:
        """Keys held by both sizeVariants and inventory.variants whose quantities disagree."""
        if not (self.has_size_variants and self.has_inventory):
            return []
        canonical = self.stock_map(StockSource.SIZE_VARIANTS)
        cached = self.stock_map(StockSource.INVENTORY)
        return [key for key, qty in canonical.items() if key in cached and cached[key] != qty]

    def total_is_stale(self) -> bool:
        stored = self.stored_inventory_total
        if stored is None or not self.has_inventory:
            return False
        return stored != self.total(StockSource.INVENTORY)

    # --- builders used by reconciliation -----------------------------------

    def build_inventory(self, slots: List[VariantSlot] = None) -> Dict[str, Any]:
        """Derive an ``inventory`` aggregate from the given slots (defaults to sizeVariants)."""
        if slots is None:
            slots = list(self.size_variant_slots())
        variants = [
            {"size": slot.size, "color": slot.color or self.default_color, "quantity": slot.quantity}
            for slot in slots
        ]
        return {"total": sum(v["quantity"] for v in variants), "variants": variants}

    def build_size_variants(self, slots: List[VariantSlot] = None) -> List[Dict[str, Any]]:
        """Group flat slots (defaults to inventory.variants) into the nested sizeVariants shape."""
        if slots is None:
            slots = list(self.inventory_slots())
        by_size: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for slot in slots:
            size_variant = by_size.setdefault(slot.size, {"size": slot.size, "colorVariants": []})
            size_variant["colorVariants"].append(
                {"color": slot.color or self.default_color, "stock": slot.quantity}
            )
        return list(by_size.values())
