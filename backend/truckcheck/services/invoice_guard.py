# Overview: Duplicate invoice guard; one invoice number, one live checkout.

from __future__ import annotations

from typing import Iterable

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError
from ..models import Checkout, CheckoutInvoice
from ..models.checkouts import CHECKOUT_STATUS_CANCELLED


def find_conflicts(candidate_invoice_numbers: Iterable[str], exclude_checkout_id: int | None = None) -> list[dict]:
    """
    Return every candidate number already claimed by another non-cancelled
    checkout, grouped by owning checkout (ordered by checkout id).
    """
    candidates = sorted(set(candidate_invoice_numbers))
    if not candidates:
        return []

    q = (
        db.session.query(CheckoutInvoice.invoice_number, Checkout.id, Checkout.employee_name)
        .join(Checkout, CheckoutInvoice.checkout_id == Checkout.id)
        .filter(CheckoutInvoice.invoice_number.in_(candidates))
        .filter(Checkout.status != CHECKOUT_STATUS_CANCELLED)
    )
    if exclude_checkout_id is not None:
        q = q.filter(Checkout.id != exclude_checkout_id)

    grouped: dict[int, dict] = {}
    for invoice_number, checkout_id, employee_name in q.all():
        entry = grouped.setdefault(
            checkout_id,
            {"checkout_id": checkout_id, "employee_name": employee_name, "invoice_numbers": []},
        )
        entry["invoice_numbers"].append(invoice_number)

    conflicts = []
    for checkout_id in sorted(grouped):
        entry = grouped[checkout_id]
        entry["invoice_numbers"].sort()
        conflicts.append(entry)
    return conflicts


def check_no_conflicts(candidate_invoice_numbers: Iterable[str], exclude_checkout_id: int | None = None) -> None:
    """
    Raises:
        ConflictError: listing the other checkout(s) holding any candidate
    """
    conflicts = find_conflicts(candidate_invoice_numbers, exclude_checkout_id)
    if conflicts:
        numbers = sorted(n for c in conflicts for n in c["invoice_numbers"])
        raise ConflictError(
            f"Invoice number(s) already attached to another checkout: {', '.join(numbers)}",
            conflicts=conflicts,
        )


def claim_invoice_numbers(checkout: Checkout, invoice_numbers: Iterable[str]) -> None:
    """
    Sync the claimed-invoice index for a checkout and flush.

    Must run in the same transaction as check_no_conflicts. A concurrent
    claim that slipped past the check trips the UNIQUE constraint here and
    surfaces as ConflictError.
    """
    wanted = set(invoice_numbers)
    held = {claim.invoice_number for claim in checkout.invoice_claims}
    for number in sorted(wanted - held):
        checkout.invoice_claims.append(CheckoutInvoice(invoice_number=number))
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            "Invoice number(s) were claimed by another checkout while this one was being saved"
        ) from exc


def release_invoice_numbers(checkout: Checkout) -> None:
    checkout.invoice_claims.clear()
    db.session.flush()
