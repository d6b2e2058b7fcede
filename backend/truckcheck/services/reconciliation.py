# backend/truckcheck/services/reconciliation.py
"""
Reconciliation engine: items taken vs. items sold, per canonical item.

Pure functions and immutable values only. No database, no Flask, no I/O,
so previews and commits can never compute different answers for the same
inputs.

Row rules:
    difference = quantity_taken - quantity_sold
    matched   difference == 0
    excess    difference > 0   (more taken than sold; surplus on the truck)
    shortage  difference < 0   (invoice sold more than the checkout carried)

Every canonical name present on either side gets exactly one row; rows are
sorted by canonical name.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional


DISCREPANCY_MATCHED = "matched"
DISCREPANCY_EXCESS = "excess"
DISCREPANCY_SHORTAGE = "shortage"

INVOICE_FETCHED = "fetched"
INVOICE_NOT_FOUND = "not_found"
INVOICE_ERROR = "error"


def classify(difference: int) -> str:
    if difference == 0:
        return DISCREPANCY_MATCHED
    if difference > 0:
        return DISCREPANCY_EXCESS
    return DISCREPANCY_SHORTAGE


@dataclass(frozen=True)
class TakenItem:
    """What reconcile needs from a checkout line."""
    canonical_name: str
    quantity: int
    sku: Optional[str] = None


@dataclass(frozen=True)
class Discrepancy:
    canonical_name: str
    quantity_taken: int
    quantity_sold: int
    sku: Optional[str] = None

    @property
    def difference(self) -> int:
        return self.quantity_taken - self.quantity_sold

    @property
    def status(self) -> str:
        return classify(self.difference)

    @property
    def double_counted(self) -> int:
        """Units decremented both at checkout and by the invoice sync."""
        return min(self.quantity_taken, self.quantity_sold)

    def to_dict(self) -> dict:
        return {
            "canonical_name": self.canonical_name,
            "sku": self.sku,
            "quantity_taken": self.quantity_taken,
            "quantity_sold": self.quantity_sold,
            "difference": self.difference,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Discrepancy":
        return cls(
            canonical_name=data["canonical_name"],
            quantity_taken=int(data["quantity_taken"]),
            quantity_sold=int(data["quantity_sold"]),
            sku=data.get("sku"),
        )


@dataclass(frozen=True)
class TallyResult:
    discrepancies: tuple[Discrepancy, ...]
    invoice_statuses: Mapping[str, str] = field(default_factory=dict)

    @property
    def total_invoices(self) -> int:
        return len(self.invoice_statuses)

    @property
    def fetched_invoices(self) -> int:
        return sum(1 for s in self.invoice_statuses.values() if s == INVOICE_FETCHED)

    @property
    def partial(self) -> bool:
        return self.fetched_invoices < self.total_invoices

    @property
    def matched_count(self) -> int:
        return sum(1 for d in self.discrepancies if d.status == DISCREPANCY_MATCHED)

    @property
    def discrepancy_count(self) -> int:
        return len(self.discrepancies) - self.matched_count

    @property
    def total_quantity_taken(self) -> int:
        return sum(d.quantity_taken for d in self.discrepancies)

    @property
    def total_quantity_sold(self) -> int:
        return sum(d.quantity_sold for d in self.discrepancies)

    def summary(self) -> dict:
        return {
            "total_invoices": self.total_invoices,
            "fetched_invoices": self.fetched_invoices,
            "matched": self.matched_count,
            "discrepancies": self.discrepancy_count,
            "partial": self.partial,
        }

    def to_dict(self) -> dict:
        return {
            "discrepancies": [d.to_dict() for d in self.discrepancies],
            "invoice_statuses": dict(self.invoice_statuses),
            "total_invoices": self.total_invoices,
            "fetched_invoices": self.fetched_invoices,
            "partial": self.partial,
            "matched_count": self.matched_count,
            "discrepancy_count": self.discrepancy_count,
            "total_quantity_taken": self.total_quantity_taken,
            "total_quantity_sold": self.total_quantity_sold,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "TallyResult":
        return cls(
            discrepancies=tuple(Discrepancy.from_dict(row) for row in data.get("discrepancies", [])),
            invoice_statuses=dict(data.get("invoice_statuses") or {}),
        )


def reconcile(
    items_taken: Iterable[TakenItem],
    sold_by_canonical_name: Mapping[str, int],
    invoice_statuses: Optional[Mapping[str, str]] = None,
) -> TallyResult:
    """
    Compare taken vs. sold quantities per canonical item.

    items_taken is expected to be merged already (one entry per canonical
    name); repeated names are summed anyway so no quantity is ever lost.
    """
    taken: dict[str, int] = {}
    skus: dict[str, Optional[str]] = {}
    for item in items_taken:
        taken[item.canonical_name] = taken.get(item.canonical_name, 0) + item.quantity
        if item.sku and not skus.get(item.canonical_name):
            skus[item.canonical_name] = item.sku

    names = sorted(set(taken) | set(sold_by_canonical_name))
    rows = tuple(
        Discrepancy(
            canonical_name=name,
            quantity_taken=taken.get(name, 0),
            quantity_sold=int(sold_by_canonical_name.get(name, 0)),
            sku=skus.get(name),
        )
        for name in names
    )

    statuses = dict(sorted((invoice_statuses or {}).items()))
    return TallyResult(discrepancies=rows, invoice_statuses=statuses)
