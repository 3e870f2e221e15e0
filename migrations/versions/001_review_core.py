"""Review core — users, training plans, review records and audit trail

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

Changes:
  - Create users table (role, admin flag, public profile, certifications)
  - Create training_plans / training_sessions tables (rating engine input)
  - Create review_records table shared by every approval workflow
  - Create audit_logs table
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="athlete"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("athlete_type", sa.String(100), nullable=True),
        sa.Column("school_club", sa.String(255), nullable=True),
        sa.Column("date_of_birth", sa.String(20), nullable=True),
        sa.Column("national_ranking", sa.String(50), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        sa.Column("training_place", sa.String(255), nullable=True),
        sa.Column("certifications", sa.JSON(), nullable=False),
    )

    # ── training plans / sessions ─────────────────────────────────────────────
    op.create_table(
        "training_plans",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_training_plans_athlete_id", "training_plans", ["athlete_id"])

    op.create_table(
        "training_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "plan_id",
            sa.Integer(),
            sa.ForeignKey("training_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_training_sessions_plan_id", "training_sessions", ["plan_id"])

    # ── review records ────────────────────────────────────────────────────────
    op.create_table(
        "review_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("submitted_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("decided_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
    )
    op.create_index("ix_review_records_kind", "review_records", ["kind"])
    op.create_index("ix_review_records_subject_id", "review_records", ["subject_id"])
    op.create_index("ix_review_records_status", "review_records", ["status"])

    # ── audit trail ───────────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("actor_role", sa.String(20), nullable=True),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("resource_type", sa.String(40), nullable=False),
        sa.Column("resource_id", sa.String(36), nullable=True),
        sa.Column("result", sa.String(20), nullable=False),
        sa.Column("denial_reason", sa.String(255), nullable=True),
        sa.Column("status_before", sa.String(40), nullable=True),
        sa.Column("status_after", sa.String(40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_resource_id", "audit_logs", ["resource_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_resource_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_review_records_status", table_name="review_records")
    op.drop_index("ix_review_records_subject_id", table_name="review_records")
    op.drop_index("ix_review_records_kind", table_name="review_records")
    op.drop_table("review_records")
    op.drop_index("ix_training_sessions_plan_id", table_name="training_sessions")
    op.drop_table("training_sessions")
    op.drop_index("ix_training_plans_athlete_id", table_name="training_plans")
    op.drop_table("training_plans")
    op.drop_table("users")
