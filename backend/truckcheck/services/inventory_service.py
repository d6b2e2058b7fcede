# Overview: Inventory store; ledger-derived on-hand quantities and stock movements.

# backend/truckcheck/services/inventory_service.py
from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import InventoryItem, StockMovement
from ..models.inventory import (
    MOVEMENT_ADJUST,
    MOVEMENT_INVOICE_SALE,
    MOVEMENT_RECEIVE,
    MOVEMENT_TRUCK_CHECKOUT,
)
from .alias_service import AliasResolver, normalize_name
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)
"""
Inventory Store Invariants

- Quantity on hand is SUM(quantity_delta) over an item's StockMovement rows;
  it is never stored as a mutable field.
- Items are keyed by the normalized form of their canonical name, so a
  tally row's canonical_name finds its item regardless of case/spacing.
- Movements are append-only. Corrections are new movements.
- On-hand may go negative: trucks are loaded from what is physically on the
  shelf, and the books catch up later.

Movement signs:
- RECEIVE        +quantity
- ADJUST         signed delta
- TRUCK_CHECKOUT -quantity taken (checkout creation)
- INVOICE_SALE   -quantity sold (invoice sync)
- TRUCK_ADD_BACK +min(taken, sold) (stock processing)
"""

# Movement types callers may post through the API; the TRUCK_* types are
# written only by the checkout engine.
EXTERNAL_MOVEMENT_TYPES = (MOVEMENT_RECEIVE, MOVEMENT_ADJUST, MOVEMENT_INVOICE_SALE)


def item_key(canonical_name: str) -> str:
    return normalize_name(canonical_name)


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def find_item(canonical_name: str, *, lock: bool = False) -> InventoryItem | None:
    query = db.session.query(InventoryItem).filter_by(canonical_name=item_key(canonical_name))
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_quantity_on_hand(item_id: int) -> int:
    q = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity_delta), 0)
    ).filter(StockMovement.item_id == item_id)
    return int(q.scalar() or 0)


def record_movement(
    item: InventoryItem,
    movement_type: str,
    quantity_delta: int,
    *,
    checkout_id: int | None = None,
    invoice_number: str | None = None,
    note: str | None = None,
) -> StockMovement:
    """Append a movement and flush. The caller owns the transaction."""
    movement = StockMovement(
        item_id=item.id,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        checkout_id=checkout_id,
        invoice_number=invoice_number,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def register_item(name: str, sku: str | None = None, opening_quantity: int = 0) -> InventoryItem:
    """
    Add an item to the store, optionally with an opening RECEIVE.

    The item's identity is its alias-resolved canonical name.
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    if isinstance(opening_quantity, bool) or not isinstance(opening_quantity, int) or opening_quantity < 0:
        raise ValidationError("opening_quantity must be a non-negative integer")

    def _op():
        canonical = AliasResolver.load().resolve(name)
        if find_item(canonical) is not None:
            raise ConflictError(f"Inventory item '{canonical}' already exists")

        item = InventoryItem(name=name.strip(), canonical_name=item_key(canonical), sku=sku)
        db.session.add(item)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Inventory item '{canonical}' already exists")

        if opening_quantity:
            record_movement(item, MOVEMENT_RECEIVE, opening_quantity, note="Opening quantity")

        db.session.commit()
        return item

    return run_with_retry(_op)


def post_stock_movement(
    *,
    item_id: int,
    movement_type: str,
    quantity: int,
    invoice_number: str | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Record an externally reported movement (receipts, manual adjustments and
    the invoice sync's sale decrements).

    quantity is a positive count for RECEIVE / INVOICE_SALE and a signed,
    non-zero delta for ADJUST.
    """
    if movement_type not in EXTERNAL_MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(EXTERNAL_MOVEMENT_TYPES)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if movement_type == MOVEMENT_ADJUST:
        if quantity == 0:
            raise ValidationError("adjustment quantity cannot be zero")
        delta = quantity
    else:
        if quantity <= 0:
            raise ValidationError("quantity must be positive")
        delta = quantity if movement_type == MOVEMENT_RECEIVE else -quantity

    def _op():
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if item is None:
            raise NotFoundError(f"Inventory item {item_id} not found")
        movement = record_movement(
            item,
            movement_type,
            delta,
            invoice_number=invoice_number,
            note=note,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def decrement_for_checkout(checkout_id: int, items) -> list[str]:
    """
    Take each checkout line out of the warehouse (TRUCK_CHECKOUT).

    Runs inside the checkout's creation transaction. Returns the canonical
    names that have no inventory item; those are left alone.
    """
    missing = []
    for line in items:
        item = find_item(line.canonical_name, lock=True)
        if item is None:
            missing.append(line.canonical_name)
            continue
        record_movement(
            item,
            MOVEMENT_TRUCK_CHECKOUT,
            -line.quantity,
            checkout_id=checkout_id,
            note=f"Truck checkout #{checkout_id}",
        )
    if missing:
        logger.warning(
            "Checkout %s: no inventory item for %s; stock not decremented",
            checkout_id, ", ".join(missing),
        )
    return missing


def get_item_summary(item: InventoryItem) -> dict:
    return {**item.to_dict(), "quantity_on_hand": get_quantity_on_hand(item.id)}


def list_items(include_inactive: bool = False) -> list[dict]:
    q = db.session.query(InventoryItem)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return [get_item_summary(item) for item in q.order_by(InventoryItem.canonical_name).all()]


def list_movements(item_id: int, *, checkout_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    get_item(item_id)
    q = db.session.query(StockMovement).filter_by(item_id=item_id)
    if checkout_id is not None:
        q = q.filter_by(checkout_id=checkout_id)
    return q.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc()).limit(limit).all()
