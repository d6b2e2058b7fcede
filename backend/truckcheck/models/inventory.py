from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


MOVEMENT_RECEIVE = "RECEIVE"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_TRUCK_CHECKOUT = "TRUCK_CHECKOUT"
MOVEMENT_INVOICE_SALE = "INVOICE_SALE"
MOVEMENT_TRUCK_ADD_BACK = "TRUCK_ADD_BACK"

MOVEMENT_TYPES = (
    MOVEMENT_RECEIVE,
    MOVEMENT_ADJUST,
    MOVEMENT_TRUCK_CHECKOUT,
    MOVEMENT_INVOICE_SALE,
    MOVEMENT_TRUCK_ADD_BACK,
)


class InventoryItem(db.Model):
    """
    Warehouse item master data.

    canonical_name is the normalized identity used by tallies; it is unique.
    Quantity on hand is never stored here: it is SUM(quantity_delta) over
    the item's StockMovement rows.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("canonical_name", name="uq_inventory_items_canonical"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    canonical_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} canonical_name={self.canonical_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "canonical_name": self.canonical_name,
            "sku": self.sku,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_item_occurred", "item_id", "occurred_at"),
        db.Index("ix_stock_movements_checkout_type", "checkout_id", "movement_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)

    # Plain references; a deleted checkout keeps its movement history
    checkout_id = db.Column(db.Integer, nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)

    note = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("InventoryItem", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "checkout_id": self.checkout_id,
            "invoice_number": self.invoice_number,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
