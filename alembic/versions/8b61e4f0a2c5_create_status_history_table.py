"""create status_history table

Revision ID: 8b61e4f0a2c5
Revises: 3f2a9c1d7e40
Create Date: 2026-09-28 10:31:07.904117

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b61e4f0a2c5"
down_revision: str | Sequence[str] | None = "3f2a9c1d7e40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create append-only status history."""
    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("car_id", sa.Integer(), nullable=False),
        sa.Column("previous_status", sa.String(length=20), nullable=True),
        sa.Column("new_status", sa.String(length=20), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["car_id"], ["cars.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_status_history_car_id"), "status_history", ["car_id"], unique=False)
    op.create_index(op.f("ix_status_history_new_status"), "status_history", ["new_status"], unique=False)
    op.create_index(op.f("ix_status_history_changed_at"), "status_history", ["changed_at"], unique=False)
    op.create_index("idx_status_history_car_status", "status_history", ["car_id", "new_status"], unique=False)


def downgrade() -> None:
    """Drop status history."""
    op.drop_index("idx_status_history_car_status", table_name="status_history")
    op.drop_index(op.f("ix_status_history_changed_at"), table_name="status_history")
    op.drop_index(op.f("ix_status_history_new_status"), table_name="status_history")
    op.drop_index(op.f("ix_status_history_car_id"), table_name="status_history")
    op.drop_table("status_history")
