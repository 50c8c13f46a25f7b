"""Initial schema: discount_jobs and tick_runs

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "discount_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("variant_id", sa.String(64), nullable=False),
        sa.Column("discount_percent", sa.Float(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("original_price", sa.String(32), nullable=True),
        sa.Column("original_compare_at", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_discount_jobs_variant_id", "discount_jobs", ["variant_id"])
    op.create_index("ix_discount_jobs_start_time", "discount_jobs", ["start_time"])
    op.create_index("ix_discount_jobs_end_time", "discount_jobs", ["end_time"])
    op.create_index("ix_discount_jobs_status", "discount_jobs", ["status"])

    op.create_table(
        "tick_runs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("trigger", sa.String(20), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=False),
        sa.Column("activated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reverted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cancelled", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors_json", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tick_runs_trigger", "tick_runs", ["trigger"])
    op.create_index("ix_tick_runs_started_at", "tick_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_tick_runs_started_at", table_name="tick_runs")
    op.drop_index("ix_tick_runs_trigger", table_name="tick_runs")
    op.drop_table("tick_runs")
    op.drop_index("ix_discount_jobs_status", table_name="discount_jobs")
    op.drop_index("ix_discount_jobs_end_time", table_name="discount_jobs")
    op.drop_index("ix_discount_jobs_start_time", table_name="discount_jobs")
    op.drop_index("ix_discount_jobs_variant_id", table_name="discount_jobs")
    op.drop_table("discount_jobs")
