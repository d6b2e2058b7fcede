# Overview: Pytest coverage for the invoice directory client and sold-quantity aggregation.

import httpx
import pytest

from truckcheck.errors import InvoiceDirectoryError, ValidationError
from truckcheck.services.alias_service import AliasResolver
from truckcheck.services.invoice_directory import (
    HttpInvoiceDirectory,
    InvoiceLine,
    fetch_and_aggregate,
    normalize_invoice_numbers,
    parse_line_items,
    validate_invoice_type,
)


INVOICES = {
    "INV-1": {"invoice_number": "INV-1", "line_items": [
        {"name": "WIDGET 10PK", "quantity": 4, "status": "sold"},
        {"name": "Gadget", "quantity": 1},
    ]},
    "INV-2": {"invoice_number": "INV-2", "line_items": [
        {"name": "widget", "quantity": 2},
        {"name": "Widget", "quantity": 9, "status": "VOID"},
    ]},
    "INV-BAD": {"invoice_number": "INV-BAD", "line_items": [{"name": "Widget", "quantity": 1.5}]},
}


def _handler(request: httpx.Request) -> httpx.Response:
    number = request.url.path.rsplit("/", 1)[-1]
    if number == "INV-500":
        return httpx.Response(500, json={"error": "boom"})
    if number == "INV-SLOW":
        raise httpx.ReadTimeout("timed out", request=request)
    if number == "INV-HTML":
        return httpx.Response(200, text="<html>oops</html>")
    payload = INVOICES.get(number)
    if payload is None:
        return httpx.Response(404, json={"error": "not found"})
    return httpx.Response(200, json=payload)


@pytest.fixture
def directory():
    client = httpx.Client(base_url="http://directory.test/api", transport=httpx.MockTransport(_handler))
    yield HttpInvoiceDirectory("http://directory.test/api", client=client)
    client.close()


@pytest.fixture
def resolver():
    return AliasResolver({"widget": "Widget", "widget 10pk": "Widget"})


class TestNormalizeInvoiceNumbers:
    def test_comma_and_whitespace_string(self):
        assert normalize_invoice_numbers(" INV-1, INV-2\nINV-3 ,, ") == ["INV-1", "INV-2", "INV-3"]

    def test_duplicates_collapse_in_first_seen_order(self):
        assert normalize_invoice_numbers(["B", "A", " B ", 7]) == ["B", "A", "7"]

    def test_none_is_empty(self):
        assert normalize_invoice_numbers(None) == []

    def test_rejects_other_types(self):
        with pytest.raises(ValidationError):
            normalize_invoice_numbers({"INV-1": True})
        with pytest.raises(ValidationError):
            normalize_invoice_numbers([None])

    def test_rejects_numbers_longer_than_claim_column(self):
        assert normalize_invoice_numbers(["I" * 64]) == ["I" * 64]
        with pytest.raises(ValidationError):
            normalize_invoice_numbers(["INV-1", "I" * 65])

    def test_invoice_type(self):
        assert validate_invoice_type("pending") == "pending"
        with pytest.raises(ValidationError):
            validate_invoice_type("open")


class TestParseLineItems:
    def test_whole_float_quantity_accepted(self):
        lines = parse_line_items({"line_items": [{"name": "Widget", "quantity": 3.0}]})
        assert lines == [InvoiceLine("Widget", 3, None)]

    def test_fractional_quantity_rejected(self):
        with pytest.raises(InvoiceDirectoryError):
            parse_line_items(INVOICES["INV-BAD"])

    def test_missing_line_items_rejected(self):
        with pytest.raises(InvoiceDirectoryError):
            parse_line_items({"invoice_number": "INV-1"})


class TestHttpInvoiceDirectory:
    def test_fetch_sends_type_and_parses_lines(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=INVOICES["INV-1"])

        client = httpx.Client(base_url="http://directory.test/api", transport=httpx.MockTransport(handler))
        lines = HttpInvoiceDirectory("http://directory.test/api", client=client).fetch_invoice("INV-1", "pending")

        assert seen[0].url.path == "/api/invoices/INV-1"
        assert seen[0].url.params["type"] == "pending"
        assert lines[0] == InvoiceLine("WIDGET 10PK", 4, "sold")

    def test_unknown_invoice_is_none(self, directory):
        assert directory.fetch_invoice("INV-404", "closed") is None

    @pytest.mark.parametrize("number", ["INV-500", "INV-SLOW", "INV-HTML"])
    def test_failures_raise_directory_error(self, directory, number):
        with pytest.raises(InvoiceDirectoryError):
            directory.fetch_invoice(number, "closed")


class TestFetchAndAggregate:
    def test_sums_per_canonical_name_and_skips_void_lines(self, directory, resolver):
        aggregate = fetch_and_aggregate(["INV-1", "INV-2"], "closed", resolver=resolver, directory=directory)

        assert aggregate.sold_by_canonical_name == {"Widget": 6, "gadget": 1}
        assert aggregate.invoice_statuses == {"INV-1": "fetched", "INV-2": "fetched"}

    def test_one_failing_invoice_does_not_fail_the_batch(self, directory, resolver):
        aggregate = fetch_and_aggregate(
            ["INV-1", "INV-404", "INV-SLOW", "INV-BAD"],
            "closed",
            resolver=resolver,
            directory=directory,
        )

        assert aggregate.invoice_statuses == {
            "INV-1": "fetched",
            "INV-404": "not_found",
            "INV-SLOW": "error",
            "INV-BAD": "error",
        }
        assert aggregate.fetched_invoices == 1
        assert aggregate.sold_by_canonical_name == {"Widget": 4, "gadget": 1}

    def test_each_invoice_fetched_once(self, resolver):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json={"line_items": []})

        client = httpx.Client(base_url="http://directory.test/api", transport=httpx.MockTransport(handler))
        fetch_and_aggregate(
            ["INV-1", "INV-1", "INV-2"],
            "closed",
            resolver=resolver,
            directory=HttpInvoiceDirectory("http://directory.test/api", client=client),
        )

        assert calls == ["/api/invoices/INV-1", "/api/invoices/INV-2"]
