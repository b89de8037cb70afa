"""Create catalog tables read by the delivery scheduler.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Tables: scenarios, steps, scenario_transitions, contacts, account_credentials
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create scenario, contact and credential tables.

    Rows are maintained by the authoring and contact-management surfaces;
    step policies and messages are stored as JSONB documents.
    """
    op.create_table(
        "scenarios",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("account_id", UUID, nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("allow_re_registration", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("idx_scenarios_account", "scenarios", ["account_id"])

    op.create_table(
        "steps",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("scenario_id", UUID, sa.ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("step_order", sa.Integer, nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("policy", JSONB, nullable=False, server_default='{"kind": "immediate"}'),
        sa.Column("messages", JSONB, nullable=False),
        sa.UniqueConstraint("scenario_id", "step_order", name="uq_steps_scenario_order"),
        sa.CheckConstraint(
            "CASE WHEN jsonb_typeof(messages) = 'array' "
            "THEN jsonb_array_length(messages) > 0 ELSE false END",
            name="ck_steps_messages_not_empty",
        ),
    )

    op.create_table(
        "scenario_transitions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("from_scenario_id", UUID, sa.ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("to_scenario_id", UUID, sa.ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index(
        "idx_scenario_transitions_from",
        "scenario_transitions",
        ["from_scenario_id", "created_at"],
    )

    op.create_table(
        "contacts",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("account_id", UUID, nullable=False),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("registered_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("display_name", sa.String(255)),
        sa.Column("short_uid", sa.String(64)),
        sa.UniqueConstraint("account_id", "external_id", name="uq_contacts_account_external"),
    )
    op.create_index("idx_contacts_external_id", "contacts", ["external_id"])

    op.create_table(
        "account_credentials",
        sa.Column("account_id", UUID, primary_key=True),
        sa.Column("channel_access_token", sa.Text, nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("account_credentials")
    op.drop_index("idx_contacts_external_id", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("idx_scenario_transitions_from", table_name="scenario_transitions")
    op.drop_table("scenario_transitions")
    op.drop_table("steps")
    op.drop_index("idx_scenarios_account", table_name="scenarios")
    op.drop_table("scenarios")
