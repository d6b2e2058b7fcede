from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ItemNameMapping(db.Model):
    """
    One canonical item name and the spellings that refer to it.

    Invoices and checkouts spell the same physical item in different ways
    ("WIDGET 10PK", "Widget (10 pack)"); every alias resolves to
    canonical_name. normalized_name values are unique across ALL mappings,
    so an alias can never point at two items.
    """
    __tablename__ = "item_name_mappings"
    __table_args__ = (
        db.UniqueConstraint("normalized_name", name="uq_item_name_mappings_normalized"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    canonical_name = db.Column(db.String(255), nullable=False)
    normalized_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    aliases = db.relationship(
        "ItemNameAlias",
        order_by="ItemNameAlias.id",
        cascade="all, delete-orphan",
        backref="mapping",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "canonical_name": self.canonical_name,
            "description": self.description,
            "aliases": [alias.to_dict() for alias in self.aliases],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ItemNameAlias(db.Model):
    __tablename__ = "item_name_aliases"
    __table_args__ = (
        db.UniqueConstraint("normalized_name", name="uq_item_name_aliases_normalized"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    mapping_id = db.Column(
        db.Integer,
        db.ForeignKey("item_name_mappings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    normalized_name = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "notes": self.notes}
