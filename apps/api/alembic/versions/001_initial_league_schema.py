"""initial_league_schema

Revision ID: 001_initial_league_schema
Revises:
Create Date: 2026-10-19

Creates the club league schema:
- directory: club, member
- configuration: ruleset, season, season_club
- raw inputs: checkin, health_daily_summary
- derived: member_score_daily, club_period_score, league_standing
- audit: league_audit_event

Natural keys are unique so every batch write can be an upsert.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB


revision = "001_initial_league_schema"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk():
    return sa.Column("id", UUID(as_uuid=True), nullable=False)


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "club",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("brand_id", UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'ACTIVE'")),
        _created_at(),
        sa.Column("checkin_secret", sa.Text(), nullable=True),
        sa.Column("secret_rotated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "member",
        _uuid_pk(),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("club_id", UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("activity_consent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("activity_consent_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_member_club_id", "member", ["club_id"], unique=False)

    op.create_table(
        "ruleset",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("params", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ruleset_created_at", "ruleset", ["created_at"], unique=False)

    op.create_table(
        "season",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("scope", sa.Text(), nullable=False, server_default=sa.text("'INTERCLUB_OPEN'")),
        sa.Column("brand_id", UUID(as_uuid=True), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("ruleset_id", UUID(as_uuid=True), nullable=True),
        sa.Column("last_transition_period", sa.Date(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["ruleset_id"], ["ruleset.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'ACTIVE', 'COMPLETED', 'CANCELLED')",
            name="ck_season_status",
        ),
        sa.CheckConstraint("end_date >= start_date", name="ck_season_date_range"),
    )
    op.create_index("ix_season_status", "season", ["status"], unique=False)

    op.create_table(
        "season_club",
        _uuid_pk(),
        sa.Column("season_id", UUID(as_uuid=True), nullable=False),
        sa.Column("club_id", UUID(as_uuid=True), nullable=False),
        sa.Column("league_tier", sa.Text(), nullable=False, server_default=sa.text("'BRONZE'")),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_id", "club_id", name="uq_season_club"),
        sa.CheckConstraint(
            "league_tier IN ('BRONZE', 'SILVER', 'GOLD')",
            name="ck_season_club_league_tier",
        ),
    )

    op.create_table(
        "checkin",
        _uuid_pk(),
        sa.Column("member_id", UUID(as_uuid=True), nullable=False),
        sa.Column("club_id", UUID(as_uuid=True), nullable=False),
        sa.Column("checkin_date", sa.Date(), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("method", sa.Text(), nullable=False, server_default=sa.text("'QR'")),
        sa.Column("token_issued_at", sa.BigInteger(), nullable=True),
        sa.Column("device_info", JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("member_id", "checkin_date", name="uq_checkin_member_date"),
    )
    op.create_index("ix_checkin_club_date", "checkin", ["club_id", "checkin_date"], unique=False)

    op.create_table(
        "health_daily_summary",
        _uuid_pk(),
        sa.Column("member_id", UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("active_calories", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("steps", sa.Integer(), nullable=True),
        sa.Column("workout_minutes", sa.Integer(), nullable=True),
        sa.Column("source", sa.Text(), nullable=False, server_default=sa.text("'MANUAL'")),
        sa.Column("device_info", JSONB(), nullable=True),
        sa.Column("anomaly_flagged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("anomaly_reason", sa.Text(), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("member_id", "date", name="uq_health_daily_summary_member_date"),
    )

    op.create_table(
        "member_score_daily",
        _uuid_pk(),
        sa.Column("member_id", UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("points_checkin", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_activity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_bonus", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("streak_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ruleset_id", UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.ForeignKeyConstraint(["ruleset_id"], ["ruleset.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("member_id", "date", name="uq_member_score_daily_member_date"),
    )
    op.create_index("ix_member_score_daily_date", "member_score_daily", ["date"], unique=False)

    op.create_table(
        "club_period_score",
        _uuid_pk(),
        sa.Column("club_id", UUID(as_uuid=True), nullable=False),
        sa.Column("season_id", UUID(as_uuid=True), nullable=False),
        sa.Column("period_type", sa.Text(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("contributor_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("breakdown", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "club_id", "season_id", "period_type", "period_start",
            name="uq_club_period_score_period",
        ),
    )

    op.create_table(
        "league_standing",
        _uuid_pk(),
        sa.Column("season_id", UUID(as_uuid=True), nullable=False),
        sa.Column("club_id", UUID(as_uuid=True), nullable=False),
        sa.Column("period_type", sa.Text(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("tier", sa.Text(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("promotion", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("demotion", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "season_id", "club_id", "period_type", "period_start",
            name="uq_league_standing_period",
        ),
        sa.CheckConstraint("NOT (promotion AND demotion)", name="ck_league_standing_single_move"),
    )
    op.create_index(
        "ix_league_standing_season_period",
        "league_standing",
        ["season_id", "period_type", "period_start"],
        unique=False,
    )

    op.create_table(
        "league_audit_event",
        _uuid_pk(),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("season_id", UUID(as_uuid=True), nullable=True),
        sa.Column("club_id", UUID(as_uuid=True), nullable=True),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("from_value", sa.Text(), nullable=True),
        sa.Column("to_value", sa.Text(), nullable=True),
        sa.Column("payload", JSONB(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["season_id"], ["season.id"]),
        sa.ForeignKeyConstraint(["club_id"], ["club.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_league_audit_event_created_at", "league_audit_event", ["created_at"], unique=False)
    op.create_index("ix_league_audit_event_season", "league_audit_event", ["season_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_league_audit_event_season", table_name="league_audit_event")
    op.drop_index("ix_league_audit_event_created_at", table_name="league_audit_event")
    op.drop_table("league_audit_event")
    op.drop_index("ix_league_standing_season_period", table_name="league_standing")
    op.drop_table("league_standing")
    op.drop_table("club_period_score")
    op.drop_index("ix_member_score_daily_date", table_name="member_score_daily")
    op.drop_table("member_score_daily")
    op.drop_table("health_daily_summary")
    op.drop_index("ix_checkin_club_date", table_name="checkin")
    op.drop_table("checkin")
    op.drop_table("season_club")
    op.drop_index("ix_season_status", table_name="season")
    op.drop_table("season")
    op.drop_index("ix_ruleset_created_at", table_name="ruleset")
    op.drop_table("ruleset")
    op.drop_index("ix_member_club_id", table_name="member")
    op.drop_table("member")
    op.drop_table("club")
