# backend/truckcheck/services/stock_processor.py
"""
Stock adjustment processor: one-time correction of the inventory store
from a checkout's tally.

WHY: stock is decremented twice for every unit that was taken AND sold:
once when the truck is loaded (TRUCK_CHECKOUT) and again when the invoice
sync records the sale (INVOICE_SALE). Adding back min(taken, sold) per item
undoes the second decrement.

Per tally row:
- matched / excess: add back min(taken, sold) (TRUCK_ADD_BACK movement)
- excess: taken - sold is reported as tracked_used; nothing is re-added,
  those units were consumed on the job or await a manual return
- shortage: sold > taken means an invoice references units this checkout
  never carried; reported in errors for manual review, stock untouched

The stock_processed flag is claimed (flushed, version-checked) before the
first movement, each item runs in its own SAVEPOINT so one failure cannot
undo the others, and everything commits together. A second call fails on
the precondition with zero mutations.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import InvalidStateError, InventoryAdjustmentError
from ..models import Checkout
from ..models.checkouts import CHECKOUT_STATUS_COMPLETED
from ..models.inventory import MOVEMENT_TRUCK_ADD_BACK
from ..time_utils import utcnow
from .audit_service import append_checkout_event
from .checkout_service import lock_checkout
from .concurrency import run_with_retry
from .inventory_service import find_item, record_movement
from .reconciliation import DISCREPANCY_EXCESS, DISCREPANCY_SHORTAGE, Discrepancy, TallyResult

logger = logging.getLogger(__name__)


@dataclass
class StockAdjustmentReport:
    added_back: dict[str, int] = field(default_factory=dict)
    tracked_used: dict[str, int] = field(default_factory=dict)
    errors: list[InventoryAdjustmentError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "added_back": dict(self.added_back),
            "tracked_used": dict(self.tracked_used),
            "errors": [e.to_dict() for e in self.errors],
            "sold_adjustments": sum(self.added_back.values()),
            "used_movements": sum(self.tracked_used.values()),
        }


def _assert_processable(checkout: Checkout) -> None:
    if checkout.stock_processed:
        raise InvalidStateError("process stock for", checkout.status, "stock has already been processed")
    if checkout.status != CHECKOUT_STATUS_COMPLETED:
        raise InvalidStateError("process stock for", checkout.status)
    if not checkout.tally_result:
        raise InvalidStateError("process stock for", checkout.status, "checkout has not been tallied")


def _apply_row(checkout: Checkout, row: Discrepancy, report: StockAdjustmentReport) -> None:
    name = row.canonical_name

    if row.status == DISCREPANCY_SHORTAGE:
        report.errors.append(
            InventoryAdjustmentError(
                name,
                f"invoices report {row.quantity_sold} sold but only {row.quantity_taken} "
                f"were checked out; needs manual review",
            )
        )
        return

    if row.status == DISCREPANCY_EXCESS:
        report.tracked_used[name] = row.difference

    add_back = row.double_counted
    if add_back <= 0:
        return

    item = find_item(name, lock=True)
    if item is None:
        report.errors.append(InventoryAdjustmentError(name, "item not found in inventory store"))
        return

    try:
        with db.session.begin_nested():
            record_movement(
                item,
                MOVEMENT_TRUCK_ADD_BACK,
                add_back,
                checkout_id=checkout.id,
                note=f"Truck checkout #{checkout.id}: add back {add_back} sold",
            )
    except SQLAlchemyError as exc:
        logger.warning("Checkout %s: add-back for %r failed: %s", checkout.id, name, exc)
        report.errors.append(InventoryAdjustmentError(name, f"stock movement failed: {exc.__class__.__name__}"))
        return

    report.added_back[name] = add_back


def process_stock(checkout_id: int, *, actor: str | None = None) -> StockAdjustmentReport:
    """
    Apply the checkout's tally to the inventory store, exactly once.

    Raises:
        NotFoundError: unknown checkout
        InvalidStateError: not completed, not tallied, or already processed
    """
    def _op():
        checkout = lock_checkout(checkout_id)
        _assert_processable(checkout)

        # Claim first: a concurrent caller loses the version check here,
        # before any movement is written.
        checkout.stock_processed = True
        checkout.stock_processed_at = utcnow()
        db.session.flush()

        tally = TallyResult.from_dict(checkout.tally_result)
        report = StockAdjustmentReport()
        for row in tally.discrepancies:
            _apply_row(checkout, row, report)

        checkout.stock_adjustment = report.to_dict()
        append_checkout_event(
            checkout_id=checkout.id,
            event_type="checkout.stock_processed",
            actor=actor,
            payload=report.to_dict(),
        )
        db.session.commit()

        logger.info(
            "Checkout %s stock processed: %d added back, %d tracked used, %d errors",
            checkout_id, sum(report.added_back.values()), sum(report.tracked_used.values()), len(report.errors),
        )
        return report

    return run_with_retry(_op)
