"""
Small helpers shared by services: id parsing and idempotency keys.
"""

import secrets
import time
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from variant_inventory.core.exceptions import InvalidIdentifierError


def parse_object_id(value: Any, kind: str = "product") -> ObjectId:
    """Convert a string id to an ObjectId, raising InvalidIdentifierError on bad input."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise InvalidIdentifierError(f"Invalid {kind} ID format: {value!r}")


def build_line_transaction_id(order_transaction_id: str, product_id: str, size: str, color: str) -> str:
    return f"{order_transaction_id}_{product_id}_{size}_{color}"


def build_order_transaction_id(order_id: str, force_update: bool = False) -> str:
    """
    Deterministic per-order key. Forced re-runs get a fresh key so the ledger
    does not replay the original application.
    """
    if force_update:
        return f"order_{order_id}_force_{int(time.time() * 1000)}"
    return f"order_{order_id}"


def build_adhoc_transaction_id() -> str:
    """Random key for manual invocations; these are not deduplicated across calls."""
    return f"tx_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def to_quantity(value: Any, default: int = 0) -> int:
    """Coerce a stored stock value to a non-negative int."""
    if value is None or value == "":
        return default
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default
