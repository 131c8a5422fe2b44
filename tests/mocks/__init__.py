from datetime import datetime, timezone


class MockData:
    """Product and order documents in the shapes the storefront writes"""

    @staticmethod
    def size_variants(*entries):
        """(size, color, stock) triples, grouped by size in first-seen order"""
        grouped = {}
        for size, color, stock in entries:
            grouped.setdefault(size, []).append({"color": color, "stock": stock})
        return [{"size": size, "colorVariants": colors} for size, colors in grouped.items()]

    @staticmethod
    def inventory(*entries, total=None):
        """(size, color, quantity) triples; total defaults to their sum"""
        variants = []
        for size, color, quantity in entries:
            variant = {"size": size, "quantity": quantity}
            if color is not None:
                variant["color"] = color
            variants.append(variant)
        if total is None:
            total = sum(v["quantity"] for v in variants)
        return {"total": total, "variants": variants}

    @staticmethod
    def product(title="Test Tee", size_variants=None, inventory=None, **extra):
        doc = {"title": title}
        if size_variants is not None:
            doc["sizeVariants"] = size_variants
        if inventory is not None:
            doc["inventory"] = inventory
        doc.update(extra)
        return doc

    @staticmethod
    def line_item(product_id, size="M", color="Red", quantity=1, **extra):
        return {"productId": product_id, "size": size, "color": color, "quantity": quantity, **extra}

    @staticmethod
    def order(*items, status="processing", created_at=None, **extra):
        return {
            "status": status,
            "products": list(items),
            "createdAt": created_at or datetime.now(timezone.utc),
            **extra,
        }
