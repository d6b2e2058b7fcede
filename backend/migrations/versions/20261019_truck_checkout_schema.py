"""Truck checkout reconciliation schema

Revision ID: 20261019_truck_checkout
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_truck_checkout"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "item_name_mappings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("canonical_name", sa.String(255), nullable=False),
        sa.Column("normalized_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("normalized_name", name="uq_item_name_mappings_normalized"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "item_name_aliases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("mapping_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("normalized_name", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["mapping_id"], ["item_name_mappings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("normalized_name", name="uq_item_name_aliases_normalized"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("item_name_aliases", schema=None) as batch_op:
        batch_op.create_index("ix_item_name_aliases_mapping_id", ["mapping_id"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("canonical_name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("canonical_name", name="uq_inventory_items_canonical"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("inventory_items", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_items_sku", ["sku"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(32), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=True),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_stock_movements_movement_type", ["movement_type"], unique=False)
        batch_op.create_index("ix_stock_movements_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index("ix_stock_movements_item_occurred", ["item_id", "occurred_at"], unique=False)
        batch_op.create_index("ix_stock_movements_checkout_type", ["checkout_id", "movement_type"], unique=False)

    op.create_table(
        "checkouts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_name", sa.String(120), nullable=False),
        sa.Column("employee_id", sa.String(64), nullable=True),
        sa.Column("truck_number", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="checked_out"),
        sa.Column("checkout_date", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invoice_numbers", sa.JSON(), nullable=False),
        sa.Column("invoice_type", sa.String(16), nullable=True),
        sa.Column("tally_result", sa.JSON(), nullable=True),
        sa.Column("tallied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stock_processed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("stock_processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stock_adjustment", sa.JSON(), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("checkouts", schema=None) as batch_op:
        batch_op.create_index("ix_checkouts_status", ["status"], unique=False)
        batch_op.create_index("ix_checkouts_status_date", ["status", "checkout_date"], unique=False)
        batch_op.create_index("ix_checkouts_employee_date", ["employee_name", "checkout_date"], unique=False)

    op.create_table(
        "checkout_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("canonical_name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["checkout_id"], ["checkouts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("checkout_id", "canonical_name", name="uq_checkout_items_canonical"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("checkout_items", schema=None) as batch_op:
        batch_op.create_index("ix_checkout_items_checkout_id", ["checkout_id"], unique=False)

    op.create_table(
        "checkout_invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["checkout_id"], ["checkouts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number", name="uq_checkout_invoices_number"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("checkout_invoices", schema=None) as batch_op:
        batch_op.create_index("ix_checkout_invoices_checkout_id", ["checkout_id"], unique=False)

    op.create_table(
        "checkout_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checkout_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("actor", sa.String(120), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("checkout_events", schema=None) as batch_op:
        batch_op.create_index("ix_checkout_events_event_type", ["event_type"], unique=False)
        batch_op.create_index("ix_checkout_events_checkout_occurred", ["checkout_id", "occurred_at"], unique=False)


def downgrade():
    with op.batch_alter_table("checkout_events", schema=None) as batch_op:
        batch_op.drop_index("ix_checkout_events_checkout_occurred")
        batch_op.drop_index("ix_checkout_events_event_type")
    op.drop_table("checkout_events")

    with op.batch_alter_table("checkout_invoices", schema=None) as batch_op:
        batch_op.drop_index("ix_checkout_invoices_checkout_id")
    op.drop_table("checkout_invoices")

    with op.batch_alter_table("checkout_items", schema=None) as batch_op:
        batch_op.drop_index("ix_checkout_items_checkout_id")
    op.drop_table("checkout_items")

    with op.batch_alter_table("checkouts", schema=None) as batch_op:
        batch_op.drop_index("ix_checkouts_employee_date")
        batch_op.drop_index("ix_checkouts_status_date")
        batch_op.drop_index("ix_checkouts_status")
    op.drop_table("checkouts")

    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.drop_index("ix_stock_movements_checkout_type")
        batch_op.drop_index("ix_stock_movements_item_occurred")
        batch_op.drop_index("ix_stock_movements_occurred_at")
        batch_op.drop_index("ix_stock_movements_movement_type")
        batch_op.drop_index("ix_stock_movements_item_id")
    op.drop_table("stock_movements")

    with op.batch_alter_table("inventory_items", schema=None) as batch_op:
        batch_op.drop_index("ix_inventory_items_sku")
    op.drop_table("inventory_items")

    with op.batch_alter_table("item_name_aliases", schema=None) as batch_op:
        batch_op.drop_index("ix_item_name_aliases_mapping_id")
    op.drop_table("item_name_aliases")

    op.drop_table("item_name_mappings")
