# tests/unit/models/test_order_line_items.py
from variant_inventory.models.order import OrderLineItem, line_items


def test_line_item_defaults_for_sparse_entries():
    item = OrderLineItem.from_document(0, {"productId": "abc"})

    assert item.size == "default"
    assert item.color == "default"
    assert item.quantity == 1
    assert item.inventory_updated is False


def test_line_item_reads_legacy_id_and_variant_fields():
    item = OrderLineItem.from_document(2, {"id": "abc", "variant": "Blue", "size": "L", "quantity": "3"})

    assert item.product_id == "abc"
    assert item.color == "Blue"
    assert item.quantity == 3
    assert item.guard == {"products.2.id": "abc"}
    assert item.flag_path == "products.2.inventoryUpdated"


def test_line_item_without_product_id():
    item = OrderLineItem.from_document(0, {"size": "M", "color": "Red"})

    assert item.product_id is None


def test_line_items_skips_non_dict_entries_but_keeps_positions():
    order = {"products": ["junk", {"productId": "a", "inventoryUpdated": True}, {"productId": "b"}]}
    items = line_items(order)

    assert [item.position for item in items] == [1, 2]
    assert items[0].inventory_updated is True
    assert items[1].inventory_updated is False
    assert line_items({"products": None}) == []
