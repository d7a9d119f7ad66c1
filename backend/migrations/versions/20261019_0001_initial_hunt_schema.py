from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

def _jsonb(default: str):
    return dict(
        type_=postgresql.JSONB(astext_type=sa.Text()),
        server_default=sa.text(f"'{default}'::jsonb"),
        nullable=False,
    )

def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("join_code", sa.String(length=12), nullable=False),
        sa.Column("completed_clue_ids", **_jsonb("[]")),
        sa.Column("current_clue_id", sa.String(length=36), nullable=True),
        sa.Column("clue_statuses", **_jsonb("{}")),
        sa.Column("finale_approved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("finale_solved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("finale_solved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("side_quest_solved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_teams_join_code", "teams", ["join_code"], unique=True)

    op.create_table(
        "clues",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("body", sa.Text(), server_default="", nullable=False),
        sa.Column("answer_kind", sa.String(length=8), nullable=False),
        sa.Column("expected_answer", sa.Text(), server_default="", nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("answer_kind IN ('text','photo','scan')", name="ck_clues_answer_kind"),
    )
    op.create_index("ix_clues_order_index", "clues", ["order_index"], unique=True)

    op.create_table(
        "submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("team_name", sa.String(length=80), nullable=False),
        sa.Column("clue_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("clue_title", sa.String(length=120), server_default="", nullable=False),
        sa.Column("answer_kind", sa.String(length=8), nullable=False),
        sa.Column("content", sa.Text(), server_default="", nullable=False),
        sa.Column("media_delete_handle", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
        sa.Column("uploading", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','approved','rejected','upload_failed')", name="ck_submissions_status"
        ),
        # uploading only ever rides on a pending placeholder
        sa.CheckConstraint("NOT uploading OR status = 'pending'", name="ck_submissions_uploading_pending"),
    )
    op.create_index("ix_submissions_team_id", "submissions", ["team_id"])
    op.create_index("ix_submissions_clue_id", "submissions", ["clue_id"])
    op.create_index("ix_submissions_team_clue_status", "submissions", ["team_id", "clue_id", "status"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("submission_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_notifications_team_id", "notifications", ["team_id"])

    op.create_table(
        "announcements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=120), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=8), server_default="normal", nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("edited_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )

    op.create_table(
        "mystery",
        sa.Column("id", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("start_clue_id", sa.String(length=36), nullable=True),
        sa.Column("revealed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("revealed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("victim", **_jsonb("{}")),
        sa.Column("suspects", **_jsonb("[]")),
        sa.Column("evidence", **_jsonb("[]")),
    )

    op.create_table(
        "accusations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("team_name", sa.String(length=80), nullable=False),
        sa.Column("suspect_id", sa.String(length=64), nullable=False),
        sa.Column("suspect_name", sa.String(length=120), nullable=False),
        sa.Column("is_custom", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("correct", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("team_id", name="uq_accusations_one_per_team"),
    )

    op.create_table(
        "finale_config",
        sa.Column("id", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("map_image_url", sa.Text(), nullable=True),
        sa.Column("map_description", sa.Text(), nullable=True),
        sa.Column("formula_text", sa.Text(), nullable=True),
        sa.Column("missing_answer", sa.Text(), server_default="", nullable=False),
    )

def downgrade() -> None:
    op.drop_table("finale_config")
    op.drop_table("accusations")
    op.drop_table("mystery")
    op.drop_table("announcements")
    op.drop_index("ix_notifications_team_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_submissions_team_clue_status", table_name="submissions")
    op.drop_index("ix_submissions_clue_id", table_name="submissions")
    op.drop_index("ix_submissions_team_id", table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("ix_clues_order_index", table_name="clues")
    op.drop_table("clues")
    op.drop_index("ix_teams_join_code", table_name="teams")
    op.drop_table("teams")
