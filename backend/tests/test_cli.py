# Overview: Pytest coverage for the flask CLI command groups.

from truckcheck.services import checkout_service, inventory_service


def _completed_checkout(invoices, sold):
    invoices.add("INV-1", [("Widget", sold)])
    checkout = checkout_service.create_checkout("Dana Ortiz", [{"name": "Widget", "quantity": 10}])
    return checkout_service.commit_invoices(checkout.id, ["INV-1"], "closed")


class TestCheckoutCommands:
    def test_tally_prints_rows(self, runner, db_session, widget, invoices):
        checkout = _completed_checkout(invoices, sold=6)

        result = runner.invoke(args=["checkouts", "tally", str(checkout.id)])

        assert result.exit_code == 0, result.output
        assert "Invoices fetched: 1/1" in result.output
        assert "Widget" in result.output
        assert "excess" in result.output

    def test_tally_of_open_checkout_fails(self, runner, db_session, widget):
        checkout = checkout_service.create_checkout("Dana Ortiz", [{"name": "Widget", "quantity": 1}])

        result = runner.invoke(args=["checkouts", "tally", str(checkout.id)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_process_stock_runs_once(self, runner, db_session, widget, invoices):
        checkout = _completed_checkout(invoices, sold=6)

        first = runner.invoke(args=["checkouts", "process-stock", str(checkout.id)])
        second = runner.invoke(args=["checkouts", "process-stock", str(checkout.id)])

        assert first.exit_code == 0, first.output
        assert "PASS Widget: added back 6" in first.output
        assert "USED Widget: 4 tracked as used" in first.output
        assert second.exit_code == 1
        assert inventory_service.get_quantity_on_hand(widget.id) == 16

    def test_list(self, runner, db_session, widget):
        checkout_service.create_checkout("Dana Ortiz", [{"name": "Widget", "quantity": 3}], truck_number="T-7")

        result = runner.invoke(args=["checkouts", "list"])

        assert result.exit_code == 0
        assert "Dana Ortiz" in result.output
        assert "T-7" in result.output


class TestInventoryAndAliasCommands:
    def test_add_item_and_show(self, runner, db_session):
        added = runner.invoke(args=["inventory", "add-item", "--name", "Copper Pipe", "--sku", "CP-12", "--quantity", "40"])
        shown = runner.invoke(args=["inventory", "show"])

        assert added.exit_code == 0, added.output
        assert "PASS Created item" in added.output
        assert "CP-12" in shown.output
        assert "40" in shown.output

    def test_aliases_add_then_extend(self, runner, db_session):
        created = runner.invoke(args=["aliases", "add", "--canonical", "Widget", "--alias", "wdgt"])
        extended = runner.invoke(args=["aliases", "add", "--canonical", "widget", "--alias", "widgets"])

        assert "PASS Created mapping" in created.output
        assert "PASS Updated mapping" in extended.output
        assert "aliases: wdgt, widgets" in extended.output
