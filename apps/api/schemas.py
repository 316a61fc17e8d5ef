from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List, Dict, Any

from models import ActivitySource, CheckinMethod, LeagueTier, PeriodType


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------

class CheckinTokenResponse(BaseModel):
    club_id: UUID
    token: str
    issued_at: int  # epoch seconds
    expires_at: int


class CheckinCreate(BaseModel):
    club_id: UUID
    token: str = Field(min_length=1)
    issued_at: int
    method: CheckinMethod = CheckinMethod.QR
    device_info: Optional[Dict[str, Any]] = None


class CheckinResponse(BaseModel):
    checkin_id: UUID = Field(validation_alias="id")
    timestamp: datetime = Field(validation_alias="checked_in_at")
    club_id: UUID

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class CheckinHistoryItem(BaseModel):
    id: UUID
    club_id: UUID
    checkin_date: date
    checked_in_at: datetime
    method: str

    model_config = ConfigDict(from_attributes=True)


class CheckinTodayResponse(BaseModel):
    checked_in: bool
    checkin: Optional[CheckinHistoryItem] = None


# ---------------------------------------------------------------------------
# Activity sync
# ---------------------------------------------------------------------------

class ActivitySyncRequest(BaseModel):
    date: date
    active_calories: int = Field(ge=0)
    steps: Optional[int] = Field(default=None, ge=0)
    workout_minutes: Optional[int] = Field(default=None, ge=0)
    source: ActivitySource = ActivitySource.MANUAL
    device_info: Optional[Dict[str, Any]] = None


class HealthDailySummaryResponse(BaseModel):
    id: UUID
    member_id: UUID
    date: date
    active_calories: int
    steps: Optional[int] = None
    workout_minutes: Optional[int] = None
    source: str
    anomaly_flagged: bool
    anomaly_reason: Optional[str] = None
    last_sync_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ActivitySyncResponse(BaseModel):
    stored_summary: HealthDailySummaryResponse
    anomaly_detected: bool


class ActivityConsentRequest(BaseModel):
    granted: bool


class ActivityConsentResponse(BaseModel):
    member_id: UUID
    activity_consent: bool
    activity_consent_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

class MemberScoreDailyResponse(BaseModel):
    date: date
    points_checkin: int
    points_activity: int
    points_bonus: int
    total_points: int
    streak_days: int

    model_config = ConfigDict(from_attributes=True)


class ScoreTotals(BaseModel):
    points_checkin: int
    points_activity: int
    points_bonus: int
    total_points: int
    days_scored: int


class ScoreRangeResponse(BaseModel):
    start_date: date
    end_date: date
    scores: List[MemberScoreDailyResponse]
    totals: ScoreTotals
    current_streak: int


class MemberStatsResponse(BaseModel):
    member_id: UUID
    club_id: Optional[UUID] = None
    total_points: int
    total_checkins: int
    current_streak: int
    club_rank: Optional[int] = None
    club_members: int


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------

class StandingRow(BaseModel):
    club_id: UUID
    club_name: Optional[str] = None
    tier: LeagueTier
    rank: int
    points: int
    promotion: bool
    demotion: bool
    overall_rank: Optional[int] = None
    contributor_count: int = 0
    breakdown: Dict[str, Any] = {}


class StandingsResponse(BaseModel):
    season_id: UUID
    period_type: PeriodType
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    standings: List[StandingRow]


class ClubStandingResponse(BaseModel):
    season_id: UUID
    club_id: UUID
    current_tier: LeagueTier
    period_start: Optional[date] = None
    tier: Optional[LeagueTier] = None
    rank: Optional[int] = None
    points: Optional[int] = None
    promotion: bool = False
    demotion: bool = False


# ---------------------------------------------------------------------------
# Admin jobs
# ---------------------------------------------------------------------------

class RecomputeScoresRequest(BaseModel):
    date: date
    ruleset_id: Optional[UUID] = None


class RecomputeStandingsRequest(BaseModel):
    season_id: Optional[UUID] = None
    period_type: PeriodType = PeriodType.WEEK
    # Any day after the period to close (the run closes the period before it)
    reference_date: date
    ruleset_id: Optional[UUID] = None


class LifecycleRunRequest(BaseModel):
    as_of: Optional[date] = None


class SeasonResponse(BaseModel):
    id: UUID
    name: str
    scope: str
    start_date: date
    end_date: date
    status: str
    ruleset_id: Optional[UUID] = None
    last_transition_period: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class JobSummaryResponse(BaseModel):
    job: str
    result: Dict[str, Any]
