"""initial schema: users, products, work centers, BOMs, MOs, WOs, stock ledger

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. reference tables ──────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="OPERATOR"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("uom", sa.String(50), nullable=False, server_default="Units"),
        sa.Column("unit_cost", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("category", sa.String(50), nullable=False, server_default="raw_material"),
        sa.Column("is_component", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )

    op.create_table(
        "work_centers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("capacity_per_hour", sa.Numeric(12, 2), nullable=True),
        sa.Column("cost_per_hour", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )

    # ── 2. bills of materials ────────────────────────────────────────────────
    op.create_table(
        "boms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("output_quantity", sa.Numeric(18, 4), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_boms_product_id", "boms", ["product_id"])

    op.create_table(
        "bom_components",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bom_id", sa.Integer(), sa.ForeignKey("boms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("component_product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("qty_per_unit", sa.Numeric(18, 4), nullable=False),
        sa.Column("uom", sa.String(50), nullable=True),
    )
    op.create_index("ix_bom_components_bom_id", "bom_components", ["bom_id"])

    op.create_table(
        "bom_operations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bom_id", sa.Integer(), sa.ForeignKey("boms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("work_center_id", sa.Integer(), sa.ForeignKey("work_centers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_mins", sa.Numeric(10, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_bom_operations_bom_id", "bom_operations", ["bom_id"])

    # ── 3. manufacturing and work orders ─────────────────────────────────────
    op.create_table(
        "manufacturing_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("bom_id", sa.Integer(), sa.ForeignKey("boms.id", ondelete="SET NULL"), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="draft"),
        sa.Column("component_status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("assignee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_manufacturing_orders_product_id", "manufacturing_orders", ["product_id"])
    op.create_index("ix_manufacturing_orders_status", "manufacturing_orders", ["status"])

    op.create_table(
        "work_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("mo_id", sa.Integer(), sa.ForeignKey("manufacturing_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bom_operation_id", sa.Integer(), sa.ForeignKey("bom_operations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("work_center_id", sa.Integer(), sa.ForeignKey("work_centers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("operation_name", sa.String(255), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("expected_duration_mins", sa.Numeric(10, 2), nullable=True),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("real_duration_mins", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_work_orders_mo_id", "work_orders", ["mo_id"])
    op.create_index("ix_work_orders_bom_operation_id", "work_orders", ["bom_operation_id"])
    op.create_index("ix_work_orders_status", "work_orders", ["status"])

    # ── 4. stock ledger (append-only) ────────────────────────────────────────
    op.create_table(
        "stock_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("movement_type", sa.String(10), nullable=False, comment="in | out"),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_stock_ledger_quantity_positive"),
        sa.CheckConstraint("movement_type IN ('in', 'out')", name="ck_stock_ledger_movement_type"),
    )
    op.create_index("ix_stock_ledger_product_id", "stock_ledger", ["product_id"])
    op.create_index("ix_stock_ledger_reference", "stock_ledger", ["reference"])
    op.create_index("ix_stock_ledger_created_at", "stock_ledger", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_stock_ledger_created_at", table_name="stock_ledger")
    op.drop_index("ix_stock_ledger_reference", table_name="stock_ledger")
    op.drop_index("ix_stock_ledger_product_id", table_name="stock_ledger")
    op.drop_table("stock_ledger")

    op.drop_index("ix_work_orders_status", table_name="work_orders")
    op.drop_index("ix_work_orders_bom_operation_id", table_name="work_orders")
    op.drop_index("ix_work_orders_mo_id", table_name="work_orders")
    op.drop_table("work_orders")

    op.drop_index("ix_manufacturing_orders_status", table_name="manufacturing_orders")
    op.drop_index("ix_manufacturing_orders_product_id", table_name="manufacturing_orders")
    op.drop_table("manufacturing_orders")

    op.drop_index("ix_bom_operations_bom_id", table_name="bom_operations")
    op.drop_table("bom_operations")
    op.drop_index("ix_bom_components_bom_id", table_name="bom_components")
    op.drop_table("bom_components")
    op.drop_index("ix_boms_product_id", table_name="boms")
    op.drop_table("boms")

    op.drop_table("work_centers")
    op.drop_table("products")
    op.drop_table("users")
