# Overview: Pytest coverage for the claimed-invoice index.

import pytest

from truckcheck.errors import ConflictError
from truckcheck.extensions import db
from truckcheck.models import Checkout, CheckoutInvoice
from truckcheck.services import invoice_guard


def _checkout(name, status="checked_out", numbers=()):
    checkout = Checkout(employee_name=name, status=status, invoice_numbers=list(numbers))
    db.session.add(checkout)
    db.session.flush()
    for number in numbers:
        checkout.invoice_claims.append(CheckoutInvoice(invoice_number=number))
    db.session.commit()
    return checkout


class TestFindConflicts:
    def test_groups_by_owning_checkout(self, db_session):
        a = _checkout("Dana", "completed", ["INV-3", "INV-1"])
        b = _checkout("Lee", "completed", ["INV-2"])

        conflicts = invoice_guard.find_conflicts(["INV-1", "INV-2", "INV-3", "INV-9"])

        assert conflicts == [
            {"checkout_id": a.id, "employee_name": "Dana", "invoice_numbers": ["INV-1", "INV-3"]},
            {"checkout_id": b.id, "employee_name": "Lee", "invoice_numbers": ["INV-2"]},
        ]

    def test_excludes_the_asking_checkout(self, db_session):
        a = _checkout("Dana", "completed", ["INV-1"])

        assert invoice_guard.find_conflicts(["INV-1"], exclude_checkout_id=a.id) == []

    def test_cancelled_owner_is_ignored(self, db_session):
        _checkout("Dana", "cancelled", ["INV-1"])

        assert invoice_guard.find_conflicts(["INV-1"]) == []

    def test_check_raises_with_conflicts(self, db_session):
        a = _checkout("Dana", "completed", ["INV-1"])

        with pytest.raises(ConflictError) as exc:
            invoice_guard.check_no_conflicts(["INV-1"])
        assert exc.value.to_dict()["duplicate_checkouts"][0]["checkout_id"] == a.id


class TestClaims:
    def test_unique_index_rejects_second_claim(self, db_session):
        _checkout("Dana", "completed", ["INV-1"])
        b = _checkout("Lee")

        with pytest.raises(ConflictError):
            invoice_guard.claim_invoice_numbers(b, ["INV-1"])

    def test_release_frees_numbers(self, db_session):
        a = _checkout("Dana", "checked_out", ["INV-1"])

        invoice_guard.release_invoice_numbers(a)
        db.session.commit()

        assert db_session.query(CheckoutInvoice).count() == 0
