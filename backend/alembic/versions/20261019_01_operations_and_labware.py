"""create labware, sample, operation and plan tables"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="normal"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "operation_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("in_place", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("discard_source", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("transfers_reagent", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "samples",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tissue", sa.String(), nullable=False),
        sa.Column("section", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "labware_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("num_rows", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("num_columns", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_table(
        "labware",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("barcode", sa.String(), nullable=False, unique=True),
        sa.Column("labware_type_id", sa.Integer(), sa.ForeignKey("labware_types.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("discarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("destroyed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("released", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("labware_id", sa.Integer(), sa.ForeignKey("labware.id", ondelete="CASCADE"), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("block_highest_section", sa.Integer(), nullable=True),
        sa.Column("block_sample_id", sa.Integer(), sa.ForeignKey("samples.id"), nullable=True),
        sa.UniqueConstraint("labware_id", "address"),
    )
    op.create_table(
        "slot_sample",
        sa.Column("slot_id", sa.Integer(), sa.ForeignKey("slots.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("sample_id", sa.Integer(), sa.ForeignKey("samples.id"), primary_key=True),
    )
    op.create_table(
        "works",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("work_number", sa.String(), nullable=False, unique=True),
        sa.Column("status", sa.String(), nullable=False, server_default="unstarted"),
    )
    op.create_table(
        "operations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("operation_type_id", sa.Integer(), sa.ForeignKey("operation_types.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("performed", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_table(
        "work_op",
        sa.Column("work_id", sa.Integer(), sa.ForeignKey("works.id"), primary_key=True),
        sa.Column("operation_id", sa.Integer(), sa.ForeignKey("operations.id"), primary_key=True),
    )
    op.create_table(
        "actions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("operation_id", sa.Integer(), sa.ForeignKey("operations.id"), nullable=False),
        sa.Column("source_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("destination_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("sample_id", sa.Integer(), sa.ForeignKey("samples.id"), nullable=False),
        sa.Column("source_sample_id", sa.Integer(), sa.ForeignKey("samples.id"), nullable=False),
    )
    op.create_index("ix_actions_destination_id", "actions", ["destination_id"])
    op.create_table(
        "plan_operations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("operation_type_id", sa.Integer(), sa.ForeignKey("operation_types.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "plan_actions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_operation_id", sa.Integer(), sa.ForeignKey("plan_operations.id"), nullable=False),
        sa.Column("source_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("destination_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("sample_id", sa.Integer(), sa.ForeignKey("samples.id"), nullable=False),
        sa.Column("new_section", sa.Integer(), nullable=True),
    )
    op.create_index("ix_plan_actions_source_id", "plan_actions", ["source_id"])

    op.bulk_insert(
        sa.table(
            "operation_types",
            sa.column("name", sa.String()),
            sa.column("in_place", sa.Boolean()),
            sa.column("discard_source", sa.Boolean()),
            sa.column("transfers_reagent", sa.Boolean()),
        ),
        [
            {"name": "Release", "in_place": True, "discard_source": False, "transfers_reagent": False},
            {"name": "Destroy", "in_place": True, "discard_source": False, "transfers_reagent": False},
            {"name": "Clean out", "in_place": True, "discard_source": False, "transfers_reagent": False},
            {"name": "Transfer", "in_place": False, "discard_source": True, "transfers_reagent": False},
            {"name": "Aliquot", "in_place": False, "discard_source": False, "transfers_reagent": False},
            {"name": "Dual index plate", "in_place": True, "discard_source": False, "transfers_reagent": True},
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_plan_actions_source_id", table_name="plan_actions")
    op.drop_table("plan_actions")
    op.drop_table("plan_operations")
    op.drop_index("ix_actions_destination_id", table_name="actions")
    op.drop_table("actions")
    op.drop_table("work_op")
    op.drop_table("operations")
    op.drop_table("works")
    op.drop_table("slot_sample")
    op.drop_table("slots")
    op.drop_table("labware")
    op.drop_table("labware_types")
    op.drop_table("samples")
    op.drop_table("operation_types")
    op.drop_table("users")
