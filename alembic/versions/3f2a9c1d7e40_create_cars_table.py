"""create cars table

Revision ID: 3f2a9c1d7e40
Revises:
Create Date: 2026-09-28 10:12:41.518203

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7e40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create cars table with first-arrival stage timestamps."""
    op.create_table(
        "cars",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("make", sa.String(length=50), nullable=False),
        sa.Column("model", sa.String(length=50), nullable=False),
        sa.Column("color", sa.String(length=30), nullable=False),
        sa.Column("license_plate", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("on_deck_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('PRE_ARRIVAL', 'REGISTERED', 'ON_DECK', 'DONE', 'PICKED_UP')",
            name="ck_cars_status",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_cars_license_plate"), "cars", ["license_plate"], unique=False)
    op.create_index(op.f("ix_cars_status"), "cars", ["status"], unique=False)


def downgrade() -> None:
    """Drop cars table."""
    op.drop_index(op.f("ix_cars_status"), table_name="cars")
    op.drop_index(op.f("ix_cars_license_plate"), table_name="cars")
    op.drop_table("cars")
