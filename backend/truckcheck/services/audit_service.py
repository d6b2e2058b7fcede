# Overview: Append-only checkout audit trail.

from __future__ import annotations

from ..extensions import db
from ..models import CheckoutEvent
"""
Checkout Audit Invariants

- Append-only; no updates or deletes of existing events.
- Events are written inside the same DB transaction as the action they record.
- Previews are not recorded (they change nothing).
"""


def append_checkout_event(
    *,
    checkout_id: int,
    event_type: str,
    actor: str | None = None,
    note: str | None = None,
    payload: dict | None = None,
) -> CheckoutEvent:
    ev = CheckoutEvent(
        checkout_id=checkout_id,
        event_type=event_type,
        actor=actor,
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_checkout_events(checkout_id: int) -> list[CheckoutEvent]:
    return (
        db.session.query(CheckoutEvent)
        .filter_by(checkout_id=checkout_id)
        .order_by(CheckoutEvent.occurred_at.asc(), CheckoutEvent.id.asc())
        .all()
    )
