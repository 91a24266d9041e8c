"""Initial AgentCRM schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _external_ids() -> list[sa.Column]:
    return [
        sa.Column("salesforce_id", sa.String(64)),
        sa.Column("hubspot_id", sa.String(64)),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
    ]


def upgrade() -> None:
    # Company
    op.create_table(
        "company",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("industry", sa.String(100)),
        sa.Column("size", sa.String(50)),
        sa.Column("revenue", sa.Float),
        sa.Column("website", sa.String(255)),
        sa.Column("is_test_data", sa.Boolean, nullable=False, server_default=sa.false()),
        *_external_ids(),
        *_timestamps(),
    )
    op.create_index("ix_company_salesforce_id", "company", ["salesforce_id"])
    op.create_index("ix_company_hubspot_id", "company", ["hubspot_id"])
    op.create_index("ix_company_is_test_data", "company", ["is_test_data"])

    # Contact
    op.create_table(
        "contact",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("title", sa.String(150)),
        sa.Column("department", sa.String(100)),
        sa.Column("lead_source", sa.String(100)),
        sa.Column("lead_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="new"),
        sa.Column("tags", sa.JSON),
        sa.Column("preferred_contact_method", sa.String(50)),
        sa.Column("owner_id", sa.String(100)),
        sa.Column("company_id", sa.Uuid, sa.ForeignKey("company.id", ondelete="SET NULL")),
        sa.Column("is_test_data", sa.Boolean, nullable=False, server_default=sa.false()),
        *_external_ids(),
        *_timestamps(),
    )
    op.create_index("ix_contact_email", "contact", ["email"])
    op.create_index("ix_contact_company_id", "contact", ["company_id"])
    op.create_index("ix_contact_salesforce_id", "contact", ["salesforce_id"])
    op.create_index("ix_contact_hubspot_id", "contact", ["hubspot_id"])
    op.create_index("ix_contact_is_test_data", "contact", ["is_test_data"])

    # Opportunity
    op.create_table(
        "opportunity",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("amount", sa.Float),
        sa.Column("stage", sa.String(50), nullable=False, server_default="prospecting"),
        sa.Column("probability", sa.Integer, nullable=False, server_default="0"),
        sa.Column("expected_close_date", sa.Date),
        sa.Column("priority", sa.String(20)),
        sa.Column("notes", sa.Text),
        sa.Column("owner_id", sa.String(100)),
        sa.Column("company_id", sa.Uuid, sa.ForeignKey("company.id", ondelete="SET NULL")),
        sa.Column("contact_id", sa.Uuid, sa.ForeignKey("contact.id", ondelete="SET NULL")),
        sa.Column("is_test_data", sa.Boolean, nullable=False, server_default=sa.false()),
        *_external_ids(),
        *_timestamps(),
    )
    op.create_index("ix_opportunity_company_id", "opportunity", ["company_id"])
    op.create_index("ix_opportunity_contact_id", "opportunity", ["contact_id"])
    op.create_index("ix_opportunity_salesforce_id", "opportunity", ["salesforce_id"])
    op.create_index("ix_opportunity_hubspot_id", "opportunity", ["hubspot_id"])
    op.create_index("ix_opportunity_is_test_data", "opportunity", ["is_test_data"])

    # Activity
    op.create_table(
        "activity",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("subject", sa.String(300), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(50), nullable=False, server_default="scheduled"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True)),
        sa.Column("contact_id", sa.Uuid, sa.ForeignKey("contact.id", ondelete="CASCADE")),
        sa.Column("opportunity_id", sa.Uuid, sa.ForeignKey("opportunity.id", ondelete="CASCADE")),
        sa.Column("is_test_data", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_activity_type", "activity", ["type"])
    op.create_index("ix_activity_contact_id", "activity", ["contact_id"])
    op.create_index("ix_activity_opportunity_id", "activity", ["opportunity_id"])
    op.create_index("ix_activity_is_test_data", "activity", ["is_test_data"])

    # Task
    op.create_table(
        "task",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("assignee_id", sa.String(100)),
        sa.Column("due_at", sa.DateTime(timezone=True)),
        sa.Column("is_test_data", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_task_is_test_data", "task", ["is_test_data"])

    # AI agents and execution audit
    op.create_table(
        "ai_agent",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("configuration", sa.JSON),
        *_timestamps(),
    )
    op.create_index("ix_ai_agent_type", "ai_agent", ["type"])

    op.create_table(
        "ai_agent_execution",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("agent_id", sa.Uuid, sa.ForeignKey("ai_agent.id", ondelete="SET NULL")),
        sa.Column("agent_type", sa.String(50), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False, server_default="native"),
        sa.Column("execution_type", sa.String(50), nullable=False, server_default="analysis"),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("input", sa.JSON),
        sa.Column("output", sa.JSON),
        sa.Column("confidence_score", sa.Float),
        sa.Column("execution_time_ms", sa.Integer),
        sa.Column("error_message", sa.Text),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_ai_agent_execution_agent_id", "ai_agent_execution", ["agent_id"])
    op.create_index("ix_ai_agent_execution_agent_type", "ai_agent_execution", ["agent_type"])

    # OAuth tokens and state
    for table, extra in (
        ("salesforce_token", sa.Column("instance_url", sa.String(255), nullable=False)),
        ("hubspot_token", sa.Column("hub_id", sa.String(50))),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Uuid, primary_key=True),
            sa.Column("user_id", sa.String(100), nullable=False),
            sa.Column("access_token", sa.Text, nullable=False),
            sa.Column("refresh_token", sa.Text),
            sa.Column("token_type", sa.String(20), nullable=False, server_default="Bearer"),
            sa.Column("scope", sa.Text),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            extra,
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    op.create_table(
        "oauth_state",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("code_verifier", sa.String(200)),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_oauth_state_state", "oauth_state", ["state"], unique=True)

    # Sync log and test runs
    op.create_table(
        "sync_log",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("platform", sa.String(20), nullable=False, server_default="salesforce"),
        sa.Column("object_type", sa.String(50), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False, server_default="import"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("records_processed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("records_failed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    op.create_table(
        "ai_test_run",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("agent_type", sa.String(50), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False, server_default="native"),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("results", sa.JSON),
        sa.Column("error_message", sa.Text),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        "ai_test_run",
        "sync_log",
        "oauth_state",
        "hubspot_token",
        "salesforce_token",
        "ai_agent_execution",
        "ai_agent",
        "task",
        "activity",
        "opportunity",
        "contact",
        "company",
    ):
        op.drop_table(table)
