# backend/truckcheck/services/checkout_service.py
"""
Checkout ledger: lifecycle and persistence of the Checkout aggregate.

LIFECYCLE:
1. checked_out: created with the items taken (stock leaves the warehouse)
2. completed: invoice numbers committed and tallied; more invoices may be
   committed later (the tally is recomputed over the union) until stock
   is processed
3. cancelled: only from checked_out, with a reason

Every mutation re-reads the checkout under lock inside run_with_retry and
checks its state guard there, whatever the client believed. Invoice fetching
(network I/O) happens before the locked unit of work; if the stored invoice
set changed in between, the fetch is repeated for the set actually committed.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import Checkout, CheckoutItem
from ..models.checkouts import (
    CHECKOUT_STATUS_CANCELLED,
    CHECKOUT_STATUS_CHECKED_OUT,
    CHECKOUT_STATUS_COMPLETED,
)
from ..time_utils import utcnow
from ..validation import ItemInput, optional_text, parse_items_taken, required_text
from .alias_service import AliasResolver
from .audit_service import append_checkout_event
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import decrement_for_checkout
from .invoice_directory import (
    fetch_and_aggregate,
    normalize_invoice_numbers,
    validate_invoice_type,
)
from .invoice_guard import check_no_conflicts, claim_invoice_numbers, release_invoice_numbers
from .reconciliation import TakenItem, TallyResult, reconcile

logger = logging.getLogger(__name__)

CHECKOUT_STATUSES = (CHECKOUT_STATUS_CHECKED_OUT, CHECKOUT_STATUS_COMPLETED, CHECKOUT_STATUS_CANCELLED)
UPDATABLE_FIELDS = {"employee_name", "employee_id", "truck_number", "notes"}


def get_checkout(checkout_id: int) -> Checkout:
    checkout = db.session.get(Checkout, checkout_id)
    if checkout is None:
        raise NotFoundError(f"Checkout {checkout_id} not found")
    return checkout


def lock_checkout(checkout_id: int) -> Checkout:
    checkout = lock_for_update(db.session.query(Checkout).filter_by(id=checkout_id)).first()
    if checkout is None:
        raise NotFoundError(f"Checkout {checkout_id} not found")
    return checkout


def taken_items(checkout: Checkout, resolver: AliasResolver) -> list[TakenItem]:
    """
    The checkout's lines keyed for reconciliation.

    Names go through the same resolver snapshot as the invoice lines, so a
    mapping added after the checkout was created still puts both sides on
    one canonical name.
    """
    return [
        TakenItem(canonical_name=resolver.resolve(item.name), quantity=item.quantity, sku=item.sku)
        for item in checkout.items
    ]


def merge_items(items: Iterable[ItemInput], resolver: AliasResolver) -> list[CheckoutItem]:
    """
    One CheckoutItem per canonical name, in first-seen order.

    Quantities are summed, the first non-empty sku is kept and notes are
    joined with "; ".
    """
    merged: dict[str, CheckoutItem] = {}
    for item in items:
        canonical = resolver.resolve(item.name)
        line = merged.get(canonical)
        if line is None:
            merged[canonical] = CheckoutItem(
                position=len(merged),
                name=item.name,
                canonical_name=canonical,
                sku=item.sku,
                quantity=item.quantity,
                notes=item.notes,
            )
            continue
        line.quantity += item.quantity
        if not line.sku and item.sku:
            line.sku = item.sku
        if item.notes:
            line.notes = f"{line.notes}; {item.notes}" if line.notes else item.notes
    return list(merged.values())


def _assert_tally_open(checkout: Checkout, operation: str) -> None:
    if checkout.status == CHECKOUT_STATUS_CANCELLED:
        raise InvalidStateError(operation, checkout.status)
    if checkout.stock_processed:
        raise InvalidStateError(operation, checkout.status, "stock has already been processed")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_checkout(
    employee_name: str,
    items_taken,
    *,
    employee_id: str | None = None,
    truck_number: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> Checkout:
    """
    Create a checkout in checked_out status.

    Raises:
        ValidationError: blank employee name, no items, non-positive or
            non-integer quantities
    """
    employee_name = required_text(employee_name, "employee_name", 120)
    employee_id = optional_text(employee_id, "employee_id", 64)
    truck_number = optional_text(truck_number, "truck_number", 32)
    notes = optional_text(notes, "notes")
    items = parse_items_taken(items_taken)

    def _op():
        lines = merge_items(items, AliasResolver.load())
        checkout = Checkout(
            employee_name=employee_name,
            employee_id=employee_id,
            truck_number=truck_number,
            notes=notes,
            status=CHECKOUT_STATUS_CHECKED_OUT,
            checkout_date=utcnow(),
            invoice_numbers=[],
            stock_processed=False,
        )
        checkout.items.extend(lines)
        db.session.add(checkout)
        db.session.flush()

        missing = []
        if current_app.config.get("DECREMENT_STOCK_ON_CHECKOUT", True):
            missing = decrement_for_checkout(checkout.id, lines)

        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.created",
            actor=actor,
            payload={
                "items": {line.canonical_name: line.quantity for line in lines},
                "untracked_items": missing,
            },
        )
        db.session.commit()

        logger.info(
            "Checkout %s created for %s: %d items, %d units",
            checkout.id, employee_name, len(lines), checkout.total_quantity_taken,
        )
        return checkout

    return run_with_retry(_op)


def preview_reconciliation(checkout_id: int, invoice_numbers, invoice_type: str) -> TallyResult:
    """
    Tally a checkout against candidate invoices without saving anything.

    Legal in any status. For "add more invoices" staging, pass the union of
    the stored and the new numbers.
    """
    validate_invoice_type(invoice_type)
    numbers = normalize_invoice_numbers(invoice_numbers)
    if not numbers:
        raise ValidationError("At least one invoice number is required")

    checkout = get_checkout(checkout_id)
    resolver = AliasResolver.load()
    aggregate = fetch_and_aggregate(numbers, invoice_type, resolver=resolver)
    return reconcile(
        taken_items(checkout, resolver), aggregate.sold_by_canonical_name, aggregate.invoice_statuses
    )


def commit_invoices(checkout_id: int, invoice_numbers, invoice_type: str, *, actor: str | None = None) -> Checkout:
    """
    Attach invoice numbers, tally, and mark the checkout completed.

    Also extends an already completed checkout: the new numbers are unioned
    with the stored ones and the tally is recomputed over the union.

    Raises:
        ValidationError: no invoice numbers, bad type, or a type different
            from the one already stored
        ConflictError: a number belongs to another live checkout (nothing
            is attached)
        InvalidStateError: cancelled, or stock already processed
    """
    validate_invoice_type(invoice_type)
    new_numbers = normalize_invoice_numbers(invoice_numbers)
    if not new_numbers:
        raise ValidationError("At least one invoice number is required")

    def _candidates(checkout: Checkout) -> list[str]:
        _assert_tally_open(checkout, "complete")
        if checkout.status == CHECKOUT_STATUS_COMPLETED and checkout.invoice_type != invoice_type:
            raise ValidationError(
                f"Checkout invoices are '{checkout.invoice_type}'; cannot add '{invoice_type}' invoices"
            )
        return normalize_invoice_numbers(list(checkout.invoice_numbers or []) + new_numbers)

    # Reject early, before any network I/O
    checkout = get_checkout(checkout_id)
    candidates = _candidates(checkout)
    check_no_conflicts(candidates, exclude_checkout_id=checkout_id)
    resolver = AliasResolver.load()
    prefetched = {tuple(candidates): fetch_and_aggregate(candidates, invoice_type, resolver=resolver)}
    db.session.rollback()

    def _op():
        checkout = lock_checkout(checkout_id)
        numbers = _candidates(checkout)
        check_no_conflicts(numbers, exclude_checkout_id=checkout.id)

        aggregate = prefetched.get(tuple(numbers))
        if aggregate is None:
            aggregate = fetch_and_aggregate(numbers, invoice_type, resolver=resolver)

        result = reconcile(
            taken_items(checkout, resolver), aggregate.sold_by_canonical_name, aggregate.invoice_statuses
        )
        was_completed = checkout.status == CHECKOUT_STATUS_COMPLETED
        added = [n for n in numbers if n not in (checkout.invoice_numbers or [])]

        checkout.invoice_numbers = numbers
        checkout.invoice_type = invoice_type
        checkout.tally_result = result.to_dict()
        checkout.tallied_at = utcnow()
        if not was_completed:
            checkout.status = CHECKOUT_STATUS_COMPLETED
            checkout.completed_date = utcnow()

        claim_invoice_numbers(checkout, numbers)

        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.invoices_added" if was_completed else "checkout.completed",
            actor=actor,
            payload={"added_invoice_numbers": added, "invoice_type": invoice_type, "summary": result.summary()},
        )
        db.session.commit()

        logger.info(
            "Checkout %s %s with %d invoices (%d/%d fetched, %d discrepancies)",
            checkout.id, "extended" if was_completed else "completed",
            len(numbers), result.fetched_invoices, result.total_invoices, result.discrepancy_count,
        )
        return checkout

    return run_with_retry(_op)


def retally(checkout_id: int, *, actor: str | None = None) -> tuple[Checkout, TallyResult]:
    """
    Re-fetch the stored invoices and replace the stored tally.

    Raises:
        InvalidStateError: not completed, no invoices, or stock processed
    """
    def _assert_retallyable(checkout: Checkout) -> None:
        _assert_tally_open(checkout, "tally")
        if checkout.status != CHECKOUT_STATUS_COMPLETED:
            raise InvalidStateError("tally", checkout.status)
        if not checkout.invoice_numbers:
            raise InvalidStateError("tally", checkout.status, "no invoice numbers attached")

    checkout = get_checkout(checkout_id)
    _assert_retallyable(checkout)
    numbers = list(checkout.invoice_numbers)
    invoice_type = checkout.invoice_type
    resolver = AliasResolver.load()
    aggregate = fetch_and_aggregate(numbers, invoice_type, resolver=resolver)
    db.session.rollback()

    def _op():
        checkout = lock_checkout(checkout_id)
        _assert_retallyable(checkout)

        agg = aggregate
        if list(checkout.invoice_numbers) != numbers or checkout.invoice_type != invoice_type:
            agg = fetch_and_aggregate(list(checkout.invoice_numbers), checkout.invoice_type, resolver=resolver)

        result = reconcile(taken_items(checkout, resolver), agg.sold_by_canonical_name, agg.invoice_statuses)
        checkout.tally_result = result.to_dict()
        checkout.tallied_at = utcnow()

        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.tallied",
            actor=actor,
            payload={"summary": result.summary()},
        )
        db.session.commit()
        return checkout, result

    return run_with_retry(_op)


def cancel_checkout(checkout_id: int, reason: str, *, actor: str | None = None) -> Checkout:
    """
    Cancel a checkout that has not been completed.

    Raises:
        ValidationError: missing reason
        InvalidStateError: status is not checked_out
    """
    reason = required_text(reason, "reason")

    def _op():
        checkout = lock_checkout(checkout_id)
        if checkout.status != CHECKOUT_STATUS_CHECKED_OUT:
            raise InvalidStateError(
                "cancel",
                checkout.status,
                "only checked out checkouts can be cancelled",
            )

        checkout.status = CHECKOUT_STATUS_CANCELLED
        checkout.cancel_reason = reason
        checkout.cancelled_at = utcnow()
        release_invoice_numbers(checkout)

        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.cancelled",
            actor=actor,
            note=reason,
        )
        db.session.commit()
        logger.info("Checkout %s cancelled: %s", checkout.id, reason)
        return checkout

    return run_with_retry(_op)


def update_checkout(checkout_id: int, fields: dict, *, actor: str | None = None) -> Checkout:
    """
    Edit descriptive fields (employee, truck, notes).

    Items and invoices are never editable here; they have their own
    operations with their own guards.
    """
    if not isinstance(fields, dict) or not fields:
        raise ValidationError("No fields to update")
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

    changes = {}
    if "employee_name" in fields:
        changes["employee_name"] = required_text(fields["employee_name"], "employee_name", 120)
    if "employee_id" in fields:
        changes["employee_id"] = optional_text(fields["employee_id"], "employee_id", 64)
    if "truck_number" in fields:
        changes["truck_number"] = optional_text(fields["truck_number"], "truck_number", 32)
    if "notes" in fields:
        changes["notes"] = optional_text(fields["notes"], "notes")

    def _op():
        checkout = lock_checkout(checkout_id)
        if checkout.status == CHECKOUT_STATUS_CANCELLED:
            raise InvalidStateError("update", checkout.status)
        for key, value in changes.items():
            setattr(checkout, key, value)
        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.updated",
            actor=actor,
            payload={"fields": sorted(changes)},
        )
        db.session.commit()
        return checkout

    return run_with_retry(_op)


def delete_checkout(checkout_id: int, *, actor: str | None = None) -> None:
    """
    Administrative hard delete, legal in any status.

    Frees the checkout's invoice numbers. Stock movements already written
    stay as they are; the audit trail records what was removed.
    """
    def _op():
        checkout = lock_checkout(checkout_id)
        snapshot = {
            "status": checkout.status,
            "employee_name": checkout.employee_name,
            "invoice_numbers": list(checkout.invoice_numbers or []),
            "stock_processed": checkout.stock_processed,
        }
        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.deleted",
            actor=actor,
            payload=snapshot,
        )
        db.session.delete(checkout)
        db.session.commit()
        logger.warning("Checkout %s deleted (was %s) by %s", checkout_id, snapshot["status"], actor or "unknown")

    run_with_retry(_op)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_checkouts(
    *,
    status: str | None = None,
    employee_name: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    if status is not None and status not in CHECKOUT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(CHECKOUT_STATUSES)}")
    if page < 1:
        raise ValidationError("page must be at least 1")
    max_limit = current_app.config.get("CHECKOUT_PAGE_LIMIT_MAX", 200)
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    limit = min(limit, max_limit)

    q = db.session.query(Checkout)
    if status:
        q = q.filter(Checkout.status == status)
    if employee_name:
        q = q.filter(func.lower(Checkout.employee_name).contains(employee_name.strip().lower(), autoescape=True))

    total = q.count()
    rows = (
        q.order_by(Checkout.checkout_date.desc(), Checkout.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "checkouts": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def list_active_checkouts() -> list[Checkout]:
    return (
        db.session.query(Checkout)
        .filter_by(status=CHECKOUT_STATUS_CHECKED_OUT)
        .order_by(Checkout.checkout_date.asc(), Checkout.id.asc())
        .all()
    )


def list_employee_checkouts(employee_name: str, limit: int = 50) -> list[Checkout]:
    return (
        db.session.query(Checkout)
        .filter(func.lower(Checkout.employee_name) == employee_name.strip().lower())
        .order_by(Checkout.checkout_date.desc(), Checkout.id.desc())
        .limit(limit)
        .all()
    )


def get_employee_stats(
    employee_name: str,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    q = db.session.query(Checkout).filter(func.lower(Checkout.employee_name) == employee_name.strip().lower())
    if start_date is not None:
        q = q.filter(Checkout.checkout_date >= start_date)
    if end_date is not None:
        q = q.filter(Checkout.checkout_date <= end_date)
    checkouts = q.all()

    def _count(status: str) -> int:
        return sum(1 for c in checkouts if c.status == status)

    return {
        "employee_name": employee_name,
        "total_checkouts": len(checkouts),
        "active_checkouts": _count(CHECKOUT_STATUS_CHECKED_OUT),
        "completed_checkouts": _count(CHECKOUT_STATUS_COMPLETED),
        "cancelled_checkouts": _count(CHECKOUT_STATUS_CANCELLED),
        "total_invoices": sum(len(c.invoice_numbers or []) for c in checkouts),
        "total_items_taken": sum(c.total_quantity_taken for c in checkouts),
        "stock_processed_checkouts": sum(1 for c in checkouts if c.stock_processed),
    }
