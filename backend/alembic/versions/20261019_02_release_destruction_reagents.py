"""add reference data, release, destruction and reagent plate tables"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_02"
down_revision: str | Sequence[str] | None = "20261019_01"
branch_labels = None
depends_on = None

_REFERENCE_TABLES = (
    ("release_destinations", "name"),
    ("release_recipients", "username"),
    ("destruction_reasons", "text"),
    ("species", "name"),
    ("fixatives", "name"),
    ("cost_codes", "code"),
    ("programs", "name"),
)


def upgrade() -> None:
    for table, key in _REFERENCE_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(key, sa.String(), nullable=False, unique=True),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        )

    op.create_table(
        "releases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("labware_id", sa.Integer(), sa.ForeignKey("labware.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("destination_id", sa.Integer(), sa.ForeignKey("release_destinations.id"), nullable=False),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("release_recipients.id"), nullable=False),
        sa.Column("operation_id", sa.Integer(), sa.ForeignKey("operations.id"), nullable=False),
        sa.Column("released", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "destructions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("labware_id", sa.Integer(), sa.ForeignKey("labware.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reason_id", sa.Integer(), sa.ForeignKey("destruction_reasons.id"), nullable=False),
        sa.Column("operation_id", sa.Integer(), sa.ForeignKey("operations.id"), nullable=False),
        sa.Column("destroyed", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "reagent_plates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("barcode", sa.String(), nullable=False, unique=True),
        sa.Column("plate_type", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "reagent_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plate_id", sa.Integer(), sa.ForeignKey("reagent_plates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("plate_id", "address"),
    )
    op.create_table(
        "reagent_actions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("operation_id", sa.Integer(), sa.ForeignKey("operations.id"), nullable=False),
        sa.Column("reagent_slot_id", sa.Integer(), sa.ForeignKey("reagent_slots.id"), nullable=False),
        sa.Column("destination_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("reagent_actions")
    op.drop_table("reagent_slots")
    op.drop_table("reagent_plates")
    op.drop_table("destructions")
    op.drop_table("releases")
    for table, _key in reversed(_REFERENCE_TABLES):
        op.drop_table(table)
