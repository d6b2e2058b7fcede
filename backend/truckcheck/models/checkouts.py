from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CHECKOUT_STATUS_CHECKED_OUT = "checked_out"
CHECKOUT_STATUS_COMPLETED = "completed"
CHECKOUT_STATUS_CANCELLED = "cancelled"

INVOICE_TYPE_PENDING = "pending"
INVOICE_TYPE_CLOSED = "closed"
INVOICE_TYPES = (INVOICE_TYPE_PENDING, INVOICE_TYPE_CLOSED)
INVOICE_NUMBER_MAX_LENGTH = 64


class Checkout(db.Model):
    """
    Truck checkout: items one employee took from the warehouse into a vehicle.

    LIFECYCLE:
    1. checked_out: items loaded, no invoices yet
    2. completed: invoice numbers attached and tallied (more may be added
       until stock is processed)
    3. cancelled: abandoned before completion (cancel_reason required)

    items_taken never change after creation. tally_result is replaced
    wholesale on every recompute. stock_processed only goes false -> true.
    """
    __tablename__ = "checkouts"
    __table_args__ = (
        db.Index("ix_checkouts_status_date", "status", "checkout_date"),
        db.Index("ix_checkouts_employee_date", "employee_name", "checkout_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    employee_name = db.Column(db.String(120), nullable=False)
    employee_id = db.Column(db.String(64), nullable=True)
    truck_number = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=CHECKOUT_STATUS_CHECKED_OUT, index=True)

    checkout_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Ordered as first attached; mirrored by CheckoutInvoice rows while not cancelled
    invoice_numbers = db.Column(db.JSON, nullable=False, default=list)
    invoice_type = db.Column(db.String(16), nullable=True)

    tally_result = db.Column(db.JSON, nullable=True)
    tallied_at = db.Column(db.DateTime(timezone=True), nullable=True)

    stock_processed = db.Column(db.Boolean, nullable=False, default=False)
    stock_processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    stock_adjustment = db.Column(db.JSON, nullable=True)

    cancel_reason = db.Column(db.Text, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "CheckoutItem",
        order_by="CheckoutItem.position",
        cascade="all, delete-orphan",
        backref="checkout",
        lazy=True,
    )
    invoice_claims = db.relationship(
        "CheckoutInvoice",
        cascade="all, delete-orphan",
        backref="checkout",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Checkout id={self.id} employee={self.employee_name!r} status={self.status}>"

    @property
    def total_quantity_taken(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "employee_name": self.employee_name,
            "employee_id": self.employee_id,
            "truck_number": self.truck_number,
            "notes": self.notes,
            "status": self.status,
            "checkout_date": to_utc_z(self.checkout_date),
            "completed_date": to_utc_z(self.completed_date),
            "invoice_numbers": list(self.invoice_numbers or []),
            "invoice_type": self.invoice_type,
            "tally_result": self.tally_result,
            "tallied_at": to_utc_z(self.tallied_at),
            "stock_processed": self.stock_processed,
            "stock_processed_at": to_utc_z(self.stock_processed_at),
            "stock_adjustment": self.stock_adjustment,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "total_quantity_taken": self.total_quantity_taken,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items_taken"] = [item.to_dict() for item in self.items]
        return data


class CheckoutItem(db.Model):
    """One merged line of items taken (unique per canonical name within a checkout)."""
    __tablename__ = "checkout_items"
    __table_args__ = (
        db.UniqueConstraint("checkout_id", "canonical_name", name="uq_checkout_items_canonical"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    checkout_id = db.Column(
        db.Integer,
        db.ForeignKey("checkouts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    # As entered by the operator; canonical_name is what tallies key on
    name = db.Column(db.String(255), nullable=False)
    canonical_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "canonical_name": self.canonical_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "notes": self.notes,
        }


class CheckoutInvoice(db.Model):
    """
    Claimed-invoice index: invoice number -> owning checkout.

    Written in the same transaction as the checkout, deleted with it and
    released on cancel, so the UNIQUE constraint means "claimed by at most
    one live checkout".
    """
    __tablename__ = "checkout_invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_checkout_invoices_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    checkout_id = db.Column(
        db.Integer,
        db.ForeignKey("checkouts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice_number = db.Column(db.String(INVOICE_NUMBER_MAX_LENGTH), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<CheckoutInvoice {self.invoice_number!r} checkout_id={self.checkout_id}>"
