"""deals pipeline, per-day assignment counter, monthly schedule anchor

Revision ID: 20261020_0002
Revises: 20261001_0001
Create Date: 2026-10-20 00:00:02
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from imobipro.models.enums import DealStage, DealStatus


# revision identifiers, used by Alembic.
revision = "20261020_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None

ENUM_TYPES = (DealStage, DealStatus)


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def _enum(enum_cls) -> sa.Enum:
    if _is_postgres():
        return postgresql.ENUM(enum_cls, name=enum_cls.__name__.lower(), create_type=False)
    return sa.Enum(enum_cls, name=enum_cls.__name__.lower())


def upgrade() -> None:
    if _is_postgres():
        for enum_cls in ENUM_TYPES:
            postgresql.ENUM(enum_cls, name=enum_cls.__name__.lower()).create(op.get_bind(), checkfirst=True)

    op.add_column("agent_profiles", sa.Column("assignments_day", sa.Date(), nullable=True))
    op.add_column(
        "agent_profiles",
        sa.Column("assignments_today", sa.Integer(), nullable=False, server_default="0"),
    )
    # NULL keeps the old behaviour for existing schedules: clamp from the current day.
    op.add_column("scheduled_reports", sa.Column("anchor_day", sa.Integer(), nullable=True))

    op.create_table(
        "deals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("agent_id", sa.Integer(), nullable=True),
        sa.Column("property_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("stage", _enum(DealStage), nullable=False),
        sa.Column("status", _enum(DealStatus), nullable=False),
        sa.Column("probability", sa.Integer(), nullable=False),
        sa.Column("stage_before_lost", _enum(DealStage), nullable=True),
        sa.Column("stage_entered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_close_date", sa.Date(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lost_reason", sa.String(length=500), nullable=True),
        sa.Column("next_action", sa.String(length=255), nullable=True),
        sa.Column("next_action_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["agent_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deals_company_id", "deals", ["company_id"])
    op.create_index("ix_deals_contact_id", "deals", ["contact_id"])
    op.create_index("idx_deals_company_stage", "deals", ["company_id", "stage"])
    op.create_index("idx_deals_company_agent", "deals", ["company_id", "agent_id"])

    op.create_table(
        "deal_stage_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("deal_id", sa.Integer(), nullable=False),
        sa.Column("from_stage", _enum(DealStage), nullable=True),
        sa.Column("to_stage", _enum(DealStage), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("days_in_previous_stage", sa.Integer(), nullable=True),
        sa.Column("changed_by_id", sa.Integer(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["changed_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_stage_history_company_id", "deal_stage_history", ["company_id"])
    op.create_index("idx_deal_stage_history_deal", "deal_stage_history", ["deal_id", "changed_at"])


def downgrade() -> None:
    op.drop_table("deal_stage_history")
    op.drop_table("deals")
    with op.batch_alter_table("scheduled_reports") as batch:
        batch.drop_column("anchor_day")
    with op.batch_alter_table("agent_profiles") as batch:
        batch.drop_column("assignments_today")
        batch.drop_column("assignments_day")
    if _is_postgres():
        for enum_cls in ENUM_TYPES:
            postgresql.ENUM(enum_cls, name=enum_cls.__name__.lower()).drop(op.get_bind(), checkfirst=True)
