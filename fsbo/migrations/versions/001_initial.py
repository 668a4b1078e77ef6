"""Initial FSBO lead sync schema.

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


def upgrade() -> None:
    # Token of record per GHL location
    op.create_table(
        "ghl_service_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("location_id", sa.String(100), nullable=False, unique=True),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("refresh_token", sa.Text),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("company_id", sa.String(100)),
        sa.Column("max_searches_limit", sa.Integer, nullable=False, server_default="100"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ghl_service_tokens_location_id", "ghl_service_tokens", ["location_id"])

    # Recurring searches
    op.create_table(
        "scheduled_searches",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("ghl_location_id", sa.String(100), nullable=False),
        sa.Column("search_params", sa.JSON, nullable=False),
        sa.Column("frequency_days", sa.Integer, nullable=False),
        sa.Column("last_run", sa.DateTime(timezone=True)),
        sa.Column("next_run", sa.DateTime(timezone=True)),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_scheduled_searches_ghl_location_id", "scheduled_searches", ["ghl_location_id"])
    op.create_index("ix_scheduled_searches_next_run", "scheduled_searches", ["next_run"])

    # Export audit rows
    op.create_table(
        "search_results",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "search_id",
            sa.Uuid(),
            sa.ForeignKey("scheduled_searches.id", ondelete="SET NULL"),
        ),
        sa.Column("ghl_location_id", sa.String(100)),
        sa.Column("property_data", sa.JSON, nullable=False),
        sa.Column("exported_to_ghl", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("ghl_contact_id", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_search_results_search_id", "search_results", ["search_id"])
    op.create_index("ix_search_results_ghl_location_id", "search_results", ["ghl_location_id"])


def downgrade() -> None:
    op.drop_table("search_results")
    op.drop_table("scheduled_searches")
    op.drop_table("ghl_service_tokens")
