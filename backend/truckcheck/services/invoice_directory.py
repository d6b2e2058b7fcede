# backend/truckcheck/services/invoice_directory.py
"""
Invoice directory client.

The directory answers "what was sold on invoice N?" with line items
(item name, quantity, status). fetch_and_aggregate() turns a set of invoice
numbers into sold quantities per canonical item.

Failure model:
- One invoice failing (absent, timeout, bad payload) never fails the batch.
  It is recorded as not_found / error in invoice_statuses, logged, and
  contributes nothing to the totals.
- Nothing here writes anywhere; previews may call it as often as they like.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import httpx
from flask import current_app

from ..errors import InvoiceDirectoryError, ValidationError
from ..models.checkouts import INVOICE_NUMBER_MAX_LENGTH, INVOICE_TYPES
from .alias_service import AliasResolver
from .reconciliation import INVOICE_ERROR, INVOICE_FETCHED, INVOICE_NOT_FOUND

logger = logging.getLogger(__name__)

# Line items in these states were never sold
VOID_LINE_STATUSES = frozenset({"void", "voided", "cancelled", "canceled", "deleted"})

_INVOICE_SPLIT = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class InvoiceLine:
    name: str
    quantity: int
    status: Optional[str] = None


@dataclass(frozen=True)
class InvoiceAggregate:
    invoice_statuses: Mapping[str, str] = field(default_factory=dict)
    sold_by_canonical_name: Mapping[str, int] = field(default_factory=dict)

    @property
    def fetched_invoices(self) -> int:
        return sum(1 for s in self.invoice_statuses.values() if s == INVOICE_FETCHED)


def normalize_invoice_numbers(invoice_numbers) -> list[str]:
    """
    Clean a caller-supplied invoice list.

    Accepts a list of strings/ints or one comma/whitespace separated string.
    Blank entries are dropped and duplicates collapsed, keeping first-seen
    order. A number longer than the claimed-invoice column is rejected.
    """
    if invoice_numbers is None:
        return []
    if isinstance(invoice_numbers, str):
        raw = _INVOICE_SPLIT.split(invoice_numbers)
    elif isinstance(invoice_numbers, (list, tuple, set, frozenset)):
        raw = []
        for value in invoice_numbers:
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise ValidationError("invoice numbers must be strings")
            raw.append(str(value))
    else:
        raise ValidationError("invoice_numbers must be a list or a comma separated string")

    cleaned: list[str] = []
    seen = set()
    for value in raw:
        number = value.strip()
        if len(number) > INVOICE_NUMBER_MAX_LENGTH:
            raise ValidationError(
                f"Invoice number is longer than {INVOICE_NUMBER_MAX_LENGTH} characters: {number[:20]}..."
            )
        if number and number not in seen:
            seen.add(number)
            cleaned.append(number)
    return cleaned


def validate_invoice_type(invoice_type) -> str:
    if invoice_type not in INVOICE_TYPES:
        raise ValidationError(f"invoice_type must be one of: {', '.join(INVOICE_TYPES)}")
    return invoice_type


def _parse_quantity(value) -> int:
    if isinstance(value, bool):
        raise InvoiceDirectoryError("line item quantity must be a number")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float) and value.is_integer():
        quantity = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        quantity = int(value.strip())
    else:
        raise InvoiceDirectoryError(f"line item quantity {value!r} is not a whole number")
    if quantity < 0:
        raise InvoiceDirectoryError(f"line item quantity {quantity} is negative")
    return quantity


def parse_line_items(payload) -> list[InvoiceLine]:
    """Validate a directory payload into InvoiceLine rows."""
    if not isinstance(payload, dict):
        raise InvoiceDirectoryError("invoice payload must be an object")
    items = payload.get("line_items")
    if not isinstance(items, list):
        raise InvoiceDirectoryError("invoice payload has no line_items list")

    lines = []
    for raw in items:
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise InvoiceDirectoryError("line item without a name")
        lines.append(
            InvoiceLine(
                name=raw["name"],
                quantity=_parse_quantity(raw.get("quantity")),
                status=raw.get("status"),
            )
        )
    return lines


class HttpInvoiceDirectory:
    """
    Invoice directory reached over HTTP.

    GET {base_url}/invoices/{number}?type={pending|closed}
        200 {"invoice_number": ..., "line_items": [{"name", "quantity", "status"}]}
        404 unknown invoice
    """

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get(self, path: str, params: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.get(path, params=params, timeout=self.timeout)
        with httpx.Client(base_url=self.base_url, timeout=self.timeout) as client:
            return client.get(path, params=params)

    def fetch_invoice(self, invoice_number: str, invoice_type: str) -> Optional[list[InvoiceLine]]:
        """
        Return the invoice's line items, or None when the directory has no
        such invoice.

        Raises:
            InvoiceDirectoryError: transport failure, timeout, unexpected
                status or malformed payload
        """
        try:
            response = self._get(f"/invoices/{invoice_number}", {"type": invoice_type})
        except httpx.HTTPError as exc:
            raise InvoiceDirectoryError(f"request failed: {exc.__class__.__name__}: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise InvoiceDirectoryError(f"directory returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise InvoiceDirectoryError("directory returned invalid JSON") from exc
        return parse_line_items(payload)


def get_invoice_directory():
    """The directory installed on the app (tests swap in their own)."""
    directory = current_app.extensions.get("invoice_directory")
    if directory is None:
        directory = HttpInvoiceDirectory(
            current_app.config["INVOICE_DIRECTORY_URL"],
            timeout=current_app.config["INVOICE_DIRECTORY_TIMEOUT"],
        )
        current_app.extensions["invoice_directory"] = directory
    return directory


def fetch_and_aggregate(
    invoice_numbers: Iterable[str],
    invoice_type: str,
    *,
    resolver: AliasResolver | None = None,
    directory=None,
) -> InvoiceAggregate:
    """
    Fetch every invoice once and sum sold quantities per canonical item.

    Per-invoice outcomes land in invoice_statuses; only fetched invoices
    contribute to sold_by_canonical_name.
    """
    validate_invoice_type(invoice_type)
    numbers = normalize_invoice_numbers(list(invoice_numbers))
    resolver = resolver or AliasResolver.load()
    directory = directory or get_invoice_directory()

    statuses: dict[str, str] = {}
    sold: dict[str, int] = {}

    for number in numbers:
        try:
            lines = directory.fetch_invoice(number, invoice_type)
        except InvoiceDirectoryError as exc:
            logger.warning("Invoice %s (%s) could not be fetched: %s", number, invoice_type, exc)
            statuses[number] = INVOICE_ERROR
            continue

        if lines is None:
            logger.warning("Invoice %s (%s) not found in directory", number, invoice_type)
            statuses[number] = INVOICE_NOT_FOUND
            continue

        per_invoice: dict[str, int] = {}
        for line in lines:
            if line.status and line.status.strip().lower() in VOID_LINE_STATUSES:
                continue
            canonical = resolver.resolve(line.name)
            if not canonical:
                continue
            per_invoice[canonical] = per_invoice.get(canonical, 0) + line.quantity

        for canonical, quantity in per_invoice.items():
            sold[canonical] = sold.get(canonical, 0) + quantity
        statuses[number] = INVOICE_FETCHED

    aggregate = InvoiceAggregate(invoice_statuses=statuses, sold_by_canonical_name=sold)
    if aggregate.fetched_invoices < len(statuses):
        logger.info("Fetched %d/%d %s invoices", aggregate.fetched_invoices, len(statuses), invoice_type)
    return aggregate
