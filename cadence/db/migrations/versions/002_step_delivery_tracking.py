"""Create step_delivery_tracking table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Tables: step_delivery_tracking
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the delivery state table.

    At most one active (waiting, ready, delivering) row may exist per
    (scenario, contact, step); terminal rows are kept as history.
    """
    op.create_table(
        "step_delivery_tracking",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("scenario_id", UUID, nullable=False),
        sa.Column("contact_id", UUID, nullable=False),
        sa.Column("step_id", UUID, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="'waiting'"),

        # Scheduling
        sa.Column("scheduled_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("next_check_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("delivered_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("last_error", sa.Text),

        # Attribution
        sa.Column("campaign_id", sa.String(255)),
        sa.Column("registration_source", sa.String(255)),

        # Bookkeeping
        sa.Column("enrolled_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("error_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),

        sa.CheckConstraint(
            "status IN ('waiting', 'ready', 'delivering', 'delivered', 'failed', 'exited')",
            name="chk_step_delivery_tracking_status",
        ),
    )

    op.create_index(
        "uq_step_delivery_tracking_active",
        "step_delivery_tracking",
        ["scenario_id", "contact_id", "step_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('waiting', 'ready', 'delivering')"),
    )

    # Claim and flip passes scan by status and due time
    op.create_index(
        "idx_step_delivery_tracking_status_scheduled",
        "step_delivery_tracking",
        ["status", "scheduled_at"],
    )

    op.create_index(
        "idx_step_delivery_tracking_scenario_contact",
        "step_delivery_tracking",
        ["scenario_id", "contact_id"],
    )


def downgrade() -> None:
    op.drop_index("idx_step_delivery_tracking_scenario_contact", table_name="step_delivery_tracking")
    op.drop_index("idx_step_delivery_tracking_status_scheduled", table_name="step_delivery_tracking")
    op.drop_index("uq_step_delivery_tracking_active", table_name="step_delivery_tracking")
    op.drop_table("step_delivery_tracking")
