# Overview: Pytest coverage for the pure reconciliation engine.

import pytest

from truckcheck.services.reconciliation import (
    DISCREPANCY_EXCESS,
    DISCREPANCY_MATCHED,
    DISCREPANCY_SHORTAGE,
    Discrepancy,
    TakenItem,
    TallyResult,
    classify,
    reconcile,
)


class TestClassify:
    @pytest.mark.parametrize("difference,expected", [
        (0, DISCREPANCY_MATCHED),
        (3, DISCREPANCY_EXCESS),
        (-1, DISCREPANCY_SHORTAGE),
    ])
    def test_classify(self, difference, expected):
        assert classify(difference) == expected


class TestReconcile:
    def test_matched(self):
        result = reconcile([TakenItem("Widget", 10)], {"Widget": 10}, {"INV-1": "fetched"})

        assert len(result.discrepancies) == 1
        row = result.discrepancies[0]
        assert row.difference == 0
        assert row.status == DISCREPANCY_MATCHED
        assert result.summary() == {
            "total_invoices": 1,
            "fetched_invoices": 1,
            "matched": 1,
            "discrepancies": 0,
            "partial": False,
        }

    def test_excess_and_shortage(self):
        result = reconcile(
            [TakenItem("Widget", 10), TakenItem("Gadget", 2)],
            {"Widget": 6, "Gadget": 5},
        )
        rows = {d.canonical_name: d for d in result.discrepancies}

        assert rows["Widget"].difference == 4
        assert rows["Widget"].status == DISCREPANCY_EXCESS
        assert rows["Gadget"].difference == -3
        assert rows["Gadget"].status == DISCREPANCY_SHORTAGE
        assert result.discrepancy_count == 2

    def test_every_name_on_either_side_gets_one_row(self):
        result = reconcile([TakenItem("Widget", 4)], {"Sprocket": 1})

        names = [d.canonical_name for d in result.discrepancies]
        assert names == ["Sprocket", "Widget"]
        sprocket = result.discrepancies[0]
        assert sprocket.quantity_taken == 0
        assert sprocket.status == DISCREPANCY_SHORTAGE

    def test_nothing_sold(self):
        result = reconcile([TakenItem("Widget", 4)], {})

        row = result.discrepancies[0]
        assert row.quantity_sold == 0
        assert row.difference == 4
        assert result.total_invoices == 0
        assert not result.partial

    def test_repeated_taken_names_are_summed(self):
        result = reconcile([TakenItem("Widget", 4, "W-1"), TakenItem("Widget", 3)], {"Widget": 7})

        assert len(result.discrepancies) == 1
        assert result.discrepancies[0].quantity_taken == 7
        assert result.discrepancies[0].sku == "W-1"

    def test_partial_when_an_invoice_was_not_fetched(self):
        result = reconcile(
            [TakenItem("Widget", 4)],
            {"Widget": 4},
            {"INV-2": "not_found", "INV-1": "fetched", "INV-3": "error"},
        )

        assert result.partial
        assert result.fetched_invoices == 1
        assert list(result.invoice_statuses) == ["INV-1", "INV-2", "INV-3"]

    def test_same_inputs_same_result(self):
        taken = [TakenItem("b", 1), TakenItem("a", 2)]
        sold = {"a": 1, "c": 4}

        assert reconcile(taken, sold) == reconcile(list(reversed(taken)), dict(reversed(sold.items())))


class TestTallyResultStorage:
    def test_from_dict_restores_rows(self):
        original = reconcile([TakenItem("Widget", 10, "W-10")], {"Widget": 6}, {"INV-1": "fetched"})

        restored = TallyResult.from_dict(original.to_dict())

        assert restored == original
        assert restored.discrepancies[0].double_counted == 6

    def test_stored_form_has_derived_fields(self):
        data = reconcile([TakenItem("Widget", 10)], {"Widget": 6}).to_dict()

        row = data["discrepancies"][0]
        assert row["difference"] == 4
        assert row["status"] == "excess"
        assert data["total_quantity_taken"] == 10
        assert data["total_quantity_sold"] == 6

    def test_double_counted_is_min_of_taken_and_sold(self):
        assert Discrepancy("x", 10, 6).double_counted == 6
        assert Discrepancy("x", 2, 5).double_counted == 2
        assert Discrepancy("x", 0, 5).double_counted == 0
