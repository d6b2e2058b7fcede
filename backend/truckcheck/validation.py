from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .errors import ValidationError

MAX_NAME_LENGTH = 255
MAX_SKU_LENGTH = 64
# A truck holds a lot, not a billion of anything
MAX_ITEM_QUANTITY = 1_000_000


@dataclass(frozen=True)
class ItemInput:
    """One validated line of items taken, before alias resolution and merging."""
    name: str
    quantity: int
    sku: Optional[str] = None
    notes: Optional[str] = None


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals and
    scientific notation ("1e3") rather than guessing.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def optional_text(value: Any, field: str, max_length: int | None = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return stripped


def required_text(value: Any, field: str, max_length: int | None = None) -> str:
    text = optional_text(value, field, max_length)
    if text is None:
        raise ValidationError(f"{field} is required")
    return text


def parse_items_taken(raw_items: Any) -> list[ItemInput]:
    """
    Validate the items-taken payload.

    Each entry: {"name": str, "quantity": int > 0, "sku"?: str, "notes"?: str}.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items_taken must contain at least one item")

    items = []
    for index, raw in enumerate(raw_items):
        label = f"items_taken[{index}]"
        if not isinstance(raw, dict):
            raise ValidationError(f"{label} must be an object")
        quantity = coerce_int(raw.get("quantity"), f"{label}.quantity")
        if quantity <= 0:
            raise ValidationError(f"{label}.quantity must be greater than zero")
        if quantity > MAX_ITEM_QUANTITY:
            raise ValidationError(f"{label}.quantity is unreasonably large")
        items.append(
            ItemInput(
                name=required_text(raw.get("name"), f"{label}.name", MAX_NAME_LENGTH),
                quantity=quantity,
                sku=optional_text(raw.get("sku"), f"{label}.sku", MAX_SKU_LENGTH),
                notes=optional_text(raw.get("notes"), f"{label}.notes"),
            )
        )
    return items
