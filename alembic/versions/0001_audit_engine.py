"""audit engine tables

Revision ID: 0001_audit_engine
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_audit_engine"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "audit_response_types",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_response_options",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "response_type_id",
            sa.String(),
            sa.ForeignKey("audit_response_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("conformity", sa.String(), nullable=True),
        sa.Column("triggers_occurrence", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("occurrence_type", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "audit_standards",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("version", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("response_type_id", sa.String(), sa.ForeignKey("audit_response_types.id"), nullable=True),
        sa.Column("calculation_method", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_standard_items",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "standard_id",
            sa.String(),
            sa.ForeignKey("audit_standards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("guidance", sa.String(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "audits",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("audit_type", sa.String(), nullable=True),
        sa.Column("scope", sa.String(), nullable=True),
        sa.Column("lead_auditor", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_standard_links",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("audit_id", sa.String(), sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("standard_id", sa.String(), sa.ForeignKey("audit_standards.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("audit_id", "standard_id", name="uq_audit_standard"),
    )

    op.create_table(
        "audit_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("audit_id", sa.String(), sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("session_date", sa.Date(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("audit_id", "display_order", name="uq_audit_session_order"),
    )

    op.create_table(
        "audit_session_items",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(),
            sa.ForeignKey("audit_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("standard_item_id", sa.String(), nullable=True),
        sa.Column("response_type_id", sa.String(), sa.ForeignKey("audit_response_types.id"), nullable=True),
        sa.Column("item_snapshot", sa.JSON(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_responses",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "session_item_id",
            sa.String(),
            sa.ForeignKey("audit_session_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("response_option_id", sa.String(), sa.ForeignKey("audit_response_options.id"), nullable=True),
        sa.Column("justification", sa.String(), nullable=True),
        sa.Column("strengths", sa.String(), nullable=True),
        sa.Column("weaknesses", sa.String(), nullable=True),
        sa.Column("observations", sa.String(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("responded_by", sa.String(), nullable=True),
        sa.Column("responded_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("session_item_id", name="uq_response_session_item"),
    )

    op.create_table(
        "audit_occurrence_sequences",
        sa.Column(
            "audit_id",
            sa.String(),
            sa.ForeignKey("audits.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "audit_occurrences",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("audit_id", sa.String(), sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "session_id",
            sa.String(),
            sa.ForeignKey("audit_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "session_item_id",
            sa.String(),
            sa.ForeignKey("audit_session_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "response_id",
            sa.String(),
            sa.ForeignKey("audit_responses.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("occurrence_number", sa.Integer(), nullable=False),
        sa.Column("occurrence_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("responsible", sa.String(), nullable=True),
        sa.Column("corrective_action", sa.String(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("closed_by", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("audit_id", "occurrence_number", name="uq_audit_occurrence_number"),
    )

    op.create_table(
        "audit_scoring_configs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("audit_id", sa.String(), sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scoring_method", sa.String(), nullable=False),
        sa.Column("nc_major_penalty", sa.Float(), nullable=False),
        sa.Column("nc_minor_penalty", sa.Float(), nullable=False),
        sa.Column("observation_penalty", sa.Float(), nullable=False),
        sa.Column("opportunity_bonus", sa.Float(), nullable=False),
        sa.Column("include_na_in_total", sa.Boolean(), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("passing_score", sa.Float(), nullable=False),
        sa.Column("conditional_margin", sa.Float(), nullable=True),
        sa.Column("grade_bands", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("audit_id", name="uq_scoring_config_audit"),
    )

    op.create_table(
        "audit_scoring_results",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("audit_id", sa.String(), sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scoring_method", sa.String(), nullable=False),
        sa.Column("total_score", sa.Float(), nullable=False),
        sa.Column("max_possible_score", sa.Float(), nullable=False),
        sa.Column("base_percentage", sa.Float(), nullable=False),
        sa.Column("penalty_points", sa.Float(), nullable=False),
        sa.Column("bonus_points", sa.Float(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("final_score", sa.Float(), nullable=False),
        sa.Column("conforming_items", sa.Integer(), nullable=False),
        sa.Column("non_conforming_items", sa.Integer(), nullable=False),
        sa.Column("partial_items", sa.Integer(), nullable=False),
        sa.Column("na_items", sa.Integer(), nullable=False),
        sa.Column("responded_items", sa.Integer(), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False),
        sa.Column("nc_major_count", sa.Integer(), nullable=False),
        sa.Column("nc_minor_count", sa.Integer(), nullable=False),
        sa.Column("observation_count", sa.Integer(), nullable=False),
        sa.Column("opportunity_count", sa.Integer(), nullable=False),
        sa.Column("grade", sa.String(), nullable=True),
        sa.Column("grade_color", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("calculated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("audit_id", name="uq_scoring_result_audit"),
    )


def downgrade() -> None:
    op.drop_table("audit_scoring_results")
    op.drop_table("audit_scoring_configs")
    op.drop_table("audit_occurrences")
    op.drop_table("audit_occurrence_sequences")
    op.drop_table("audit_responses")
    op.drop_table("audit_session_items")
    op.drop_table("audit_sessions")
    op.drop_table("audit_standard_links")
    op.drop_table("audits")
    op.drop_table("audit_standard_items")
    op.drop_table("audit_standards")
    op.drop_table("audit_response_options")
    op.drop_table("audit_response_types")
