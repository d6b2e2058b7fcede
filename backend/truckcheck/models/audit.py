from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CheckoutEvent(db.Model):
    """
    Append-only audit trail of checkout lifecycle actions.

    checkout_id is not a foreign key: the trail of a deleted
    checkout (including the checkout.deleted event itself) must survive.
    """
    __tablename__ = "checkout_events"
    __table_args__ = (
        db.Index("ix_checkout_events_checkout_occurred", "checkout_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    checkout_id = db.Column(db.Integer, nullable=False)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    actor = db.Column(db.String(120), nullable=True)
    note = db.Column(db.Text, nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "checkout_id": self.checkout_id,
            "event_type": self.event_type,
            "actor": self.actor,
            "note": self.note,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
