from sqlalchemy import Column, Integer, BigInteger, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
from enum import Enum
import uuid
from datetime import datetime, timezone


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations (stored as text)
# ---------------------------------------------------------------------------

class EntityStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class SeasonStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SeasonScope(str, Enum):
    INTERCLUB_OPEN = "INTERCLUB_OPEN"
    INTRABRAND = "INTRABRAND"
    CUSTOM_MATCH = "CUSTOM_MATCH"


class CheckinMethod(str, Enum):
    QR = "QR"
    KIOSK = "KIOSK"
    MANUAL = "MANUAL"


class ActivitySource(str, Enum):
    HEALTHKIT = "HEALTHKIT"
    HEALTH_CONNECT = "HEALTH_CONNECT"
    MANUAL = "MANUAL"


class PeriodType(str, Enum):
    WEEK = "WEEK"
    MONTH = "MONTH"


class LeagueTier(str, Enum):
    """League divisions, ordered BRONZE < SILVER < GOLD."""

    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"

    @classmethod
    def ordered(cls) -> list["LeagueTier"]:
        return [cls.BRONZE, cls.SILVER, cls.GOLD]

    @property
    def level(self) -> int:
        return LeagueTier.ordered().index(self)

    def next_up(self) -> "LeagueTier":
        """One tier up; GOLD is a ceiling and returns itself."""
        tiers = LeagueTier.ordered()
        return tiers[min(self.level + 1, len(tiers) - 1)]

    def next_down(self) -> "LeagueTier":
        """One tier down; BRONZE is a floor and returns itself."""
        return LeagueTier.ordered()[max(self.level - 1, 0)]

    @property
    def is_top(self) -> bool:
        return self.next_up() == self

    @property
    def is_bottom(self) -> bool:
        return self.next_down() == self


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

class Club(Base):
    __tablename__ = "club"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    brand_id = Column(Uuid, nullable=True)
    status = Column(Text, default=EntityStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # --- CHECK-IN TOKEN SECRET ---
    # Owned by services.checkin_tokens; rotated lazily on issuance.
    checkin_secret = Column(Text, nullable=True)
    secret_rotated_at = Column(DateTime(timezone=True), nullable=True)


class Member(Base):
    __tablename__ = "member"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    display_name = Column(Text, nullable=True)
    # Home club. Sticky: the last check-in at a different club reassigns it.
    club_id = Column(Uuid, ForeignKey("club.id"), nullable=True)
    status = Column(Text, default=EntityStatus.ACTIVE.value, nullable=False)
    activity_consent = Column(Boolean, default=False, nullable=False)
    activity_consent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_member_club_id", "club_id"),
    )


# ---------------------------------------------------------------------------
# Rulesets and seasons
# ---------------------------------------------------------------------------

class Ruleset(Base):
    """Versioned bag of scoring and anti-cheat constants. Never mutated by the engine."""
    __tablename__ = "ruleset"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    params = Column(JSONType, nullable=False, default=dict)
    # Python-side default keeps sub-second ordering for "most recent" resolution.
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_ruleset_created_at", "created_at"),
    )


class Season(Base):
    __tablename__ = "season"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    scope = Column(Text, default=SeasonScope.INTERCLUB_OPEN.value, nullable=False)
    brand_id = Column(Uuid, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(Text, default=SeasonStatus.DRAFT.value, nullable=False)
    ruleset_id = Column(Uuid, ForeignKey("ruleset.id"), nullable=True)
    # Start of the latest period whose tier transition has been applied.
    last_transition_period = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'ACTIVE', 'COMPLETED', 'CANCELLED')",
            name="ck_season_status",
        ),
        CheckConstraint("end_date >= start_date", name="ck_season_date_range"),
        Index("ix_season_status", "status"),
    )


class SeasonClub(Base):
    __tablename__ = "season_club"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    season_id = Column(Uuid, ForeignKey("season.id"), nullable=False)
    club_id = Column(Uuid, ForeignKey("club.id"), nullable=False)
    # Owned by services.league_standings.
    league_tier = Column(Text, default=LeagueTier.BRONZE.value, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("season_id", "club_id", name="uq_season_club"),
        CheckConstraint(
            "league_tier IN ('BRONZE', 'SILVER', 'GOLD')",
            name="ck_season_club_league_tier",
        ),
    )


# ---------------------------------------------------------------------------
# Raw inputs
# ---------------------------------------------------------------------------

class Checkin(Base):
    __tablename__ = "checkin"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid, ForeignKey("member.id"), nullable=False)
    club_id = Column(Uuid, ForeignKey("club.id"), nullable=False)
    checkin_date = Column(Date, nullable=False)  # UTC calendar day of checked_in_at
    checked_in_at = Column(DateTime(timezone=True), nullable=False)
    method = Column(Text, default=CheckinMethod.QR.value, nullable=False)
    token_issued_at = Column(BigInteger, nullable=True)
    device_info = Column(JSONType, nullable=True)

    __table_args__ = (
        # One per member per calendar day, independent of club
        UniqueConstraint("member_id", "checkin_date", name="uq_checkin_member_date"),
        Index("ix_checkin_club_date", "club_id", "checkin_date"),
    )


class HealthDailySummary(Base):
    __tablename__ = "health_daily_summary"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid, ForeignKey("member.id"), nullable=False)
    date = Column(Date, nullable=False)
    active_calories = Column(Integer, default=0, nullable=False)
    steps = Column(Integer, nullable=True)
    workout_minutes = Column(Integer, nullable=True)
    source = Column(Text, default=ActivitySource.MANUAL.value, nullable=False)
    device_info = Column(JSONType, nullable=True)

    # --- ANTI-CHEAT ---
    # Sticky: set by services.anomaly_detection, never cleared automatically.
    anomaly_flagged = Column(Boolean, default=False, nullable=False)
    anomaly_reason = Column(Text, nullable=True)

    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("member_id", "date", name="uq_health_daily_summary_member_date"),
    )


# ---------------------------------------------------------------------------
# Derived scores and standings
# ---------------------------------------------------------------------------

class MemberScoreDaily(Base):
    """Recomputed by services.member_scoring; never hand-edited."""
    __tablename__ = "member_score_daily"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid, ForeignKey("member.id"), nullable=False)
    date = Column(Date, nullable=False)
    points_checkin = Column(Integer, default=0, nullable=False)
    points_activity = Column(Integer, default=0, nullable=False)
    points_bonus = Column(Integer, default=0, nullable=False)
    total_points = Column(Integer, default=0, nullable=False)
    streak_days = Column(Integer, default=0, nullable=False)
    ruleset_id = Column(Uuid, ForeignKey("ruleset.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("member_id", "date", name="uq_member_score_daily_member_date"),
        Index("ix_member_score_daily_date", "date"),
    )


class ClubPeriodScore(Base):
    __tablename__ = "club_period_score"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    club_id = Column(Uuid, ForeignKey("club.id"), nullable=False)
    season_id = Column(Uuid, ForeignKey("season.id"), nullable=False)
    period_type = Column(Text, nullable=False)  # WEEK | MONTH
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    total_points = Column(Integer, default=0, nullable=False)
    contributor_count = Column(Integer, default=0, nullable=False)
    rank = Column(Integer, nullable=True)  # overall rank within the season
    breakdown = Column(JSONType, nullable=False, default=dict)
    computed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "club_id", "season_id", "period_type", "period_start",
            name="uq_club_period_score_period",
        ),
    )


class LeagueStanding(Base):
    """One row per (season, club, period): the audit trail tier transitions consume."""
    __tablename__ = "league_standing"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    season_id = Column(Uuid, ForeignKey("season.id"), nullable=False)
    club_id = Column(Uuid, ForeignKey("club.id"), nullable=False)
    period_type = Column(Text, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    tier = Column(Text, nullable=False)
    rank = Column(Integer, nullable=False)  # rank within tier
    points = Column(Integer, default=0, nullable=False)
    promotion = Column(Boolean, default=False, nullable=False)
    demotion = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "season_id", "club_id", "period_type", "period_start",
            name="uq_league_standing_period",
        ),
        CheckConstraint("NOT (promotion AND demotion)", name="ck_league_standing_single_move"),
        Index("ix_league_standing_season_period", "season_id", "period_type", "period_start"),
    )


class LeagueAuditEvent(Base):
    """Tier changes and season status changes. Purged after AUDIT_RETENTION_DAYS."""
    __tablename__ = "league_audit_event"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type = Column(Text, nullable=False)  # tier_promoted | tier_demoted | season_status
    season_id = Column(Uuid, ForeignKey("season.id"), nullable=True)
    club_id = Column(Uuid, ForeignKey("club.id"), nullable=True)
    period_start = Column(Date, nullable=True)
    from_value = Column(Text, nullable=True)
    to_value = Column(Text, nullable=True)
    payload = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_league_audit_event_created_at", "created_at"),
        Index("ix_league_audit_event_season", "season_id"),
    )
