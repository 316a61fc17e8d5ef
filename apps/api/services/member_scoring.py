"""
Member Scoring Engine

Daily score per member:
- points_checkin  = ruleset.checkin_points if the member checked in that day
- points_activity = min(floor(activity / divisor), max per day), 0 on anomaly-flagged days
- points_bonus    = ruleset.streak_bonus_points once the streak reaches streak_days_required
- total           = sum of the three

The streak counts consecutive qualifying days ending at the scored date.
A day qualifies with a check-in or activity above STREAK_ACTIVITY_FLOOR.
The walk stops at the first non-qualifying day or after
STREAK_LOOKBACK_DAYS days. Anomaly flags do not affect streaks.

Results are upserted on (member_id, date) and only derived columns are
rewritten, so re-running for the same inputs leaves identical rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional, Set
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.database import upsert
from models import Checkin, HealthDailySummary, MemberScoreDaily
from services.rulesets import RulesetParams

logger = logging.getLogger(__name__)

_SCORE_UPDATE_COLUMNS = [
    "points_checkin",
    "points_activity",
    "points_bonus",
    "total_points",
    "streak_days",
    "ruleset_id",
]


@dataclass(frozen=True)
class DailyScore:
    member_id: UUID
    date: date
    points_checkin: int
    points_activity: int
    points_bonus: int
    total_points: int
    streak_days: int
    ruleset_id: Optional[UUID] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_id": str(self.member_id),
            "date": self.date.isoformat(),
            "points_checkin": self.points_checkin,
            "points_activity": self.points_activity,
            "points_bonus": self.points_bonus,
            "total_points": self.total_points,
            "streak_days": self.streak_days,
        }


def activity_points(activity_value: int, anomaly_flagged: bool, params: RulesetParams) -> int:
    if anomaly_flagged or activity_value <= 0:
        return 0
    return min(activity_value // params.activity_points_divisor, params.max_activity_points_per_day)


def streak_bonus(streak_days: int, params: RulesetParams) -> int:
    # Threshold, not per-day stacking
    if streak_days >= params.streak_days_required:
        return params.streak_bonus_points
    return 0


def count_streak(qualifying_days: Set[date], day: date, lookback_days: int) -> int:
    streak = 0
    current = day
    while streak < lookback_days and current in qualifying_days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def compute_streak(
    db: Session,
    member_id: UUID,
    day: date,
    lookback_days: Optional[int] = None,
    activity_floor: Optional[int] = None,
) -> int:
    lookback = lookback_days or settings.STREAK_LOOKBACK_DAYS
    floor = settings.STREAK_ACTIVITY_FLOOR if activity_floor is None else activity_floor
    window_start = day - timedelta(days=lookback - 1)

    checkin_days = {
        row[0]
        for row in db.query(Checkin.checkin_date)
        .filter(
            Checkin.member_id == member_id,
            Checkin.checkin_date >= window_start,
            Checkin.checkin_date <= day,
        )
        .all()
    }
    active_days = {
        row[0]
        for row in db.query(HealthDailySummary.date)
        .filter(
            HealthDailySummary.member_id == member_id,
            HealthDailySummary.date >= window_start,
            HealthDailySummary.date <= day,
            HealthDailySummary.active_calories > floor,
        )
        .all()
    }
    return count_streak(checkin_days | active_days, day, lookback)


def score_member_day(db: Session, member_id: UUID, day: date, params: RulesetParams) -> DailyScore:
    """Compute a member's score for one day without writing it."""
    has_checkin = (
        db.query(Checkin.id)
        .filter(Checkin.member_id == member_id, Checkin.checkin_date == day)
        .first()
        is not None
    )
    summary = (
        db.query(HealthDailySummary)
        .filter(HealthDailySummary.member_id == member_id, HealthDailySummary.date == day)
        .first()
    )

    points_checkin = params.checkin_points if has_checkin else 0
    points_activity = (
        activity_points(summary.active_calories, summary.anomaly_flagged, params)
        if summary is not None
        else 0
    )
    streak_days = compute_streak(db, member_id, day)
    points_bonus = streak_bonus(streak_days, params)

    return DailyScore(
        member_id=member_id,
        date=day,
        points_checkin=points_checkin,
        points_activity=points_activity,
        points_bonus=points_bonus,
        total_points=points_checkin + points_activity + points_bonus,
        streak_days=streak_days,
        ruleset_id=params.ruleset_id,
    )


def compute_daily_score(db: Session, member_id: UUID, day: date, params: RulesetParams) -> DailyScore:
    """Compute and upsert a member's score for one day."""
    score = score_member_day(db, member_id, day, params)
    upsert(
        db,
        MemberScoreDaily,
        {
            "member_id": score.member_id,
            "date": score.date,
            "points_checkin": score.points_checkin,
            "points_activity": score.points_activity,
            "points_bonus": score.points_bonus,
            "total_points": score.total_points,
            "streak_days": score.streak_days,
            "ruleset_id": score.ruleset_id,
        },
        conflict_columns=["member_id", "date"],
        update_columns=_SCORE_UPDATE_COLUMNS,
    )
    return score
