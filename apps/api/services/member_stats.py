"""
Read-side queries over member scores: score ranges and profile stats.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Checkin, EntityStatus, Member, MemberScoreDaily, PeriodType
from services.periods import period_bounds, utcnow

logger = logging.getLogger(__name__)

SCORE_RANGES = ("today", "week", "month", "custom")


def resolve_range(
    range_name: str,
    today: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[date, date]:
    today = today or utcnow().date()
    if range_name == "today":
        return today, today
    if range_name == "week":
        return period_bounds(PeriodType.WEEK, today)
    if range_name == "month":
        return period_bounds(PeriodType.MONTH, today)
    if range_name == "custom":
        if start_date is None or end_date is None:
            raise ValueError("custom range requires start_date and end_date")
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")
        return start_date, end_date
    raise ValueError(f"Unknown range: {range_name}")


def current_streak(db: Session, member_id, as_of: date) -> int:
    row = (
        db.query(MemberScoreDaily.streak_days)
        .filter(MemberScoreDaily.member_id == member_id, MemberScoreDaily.date <= as_of)
        .order_by(MemberScoreDaily.date.desc())
        .first()
    )
    return row[0] if row else 0


def get_score_range(db: Session, member: Member, start: date, end: date) -> Dict[str, Any]:
    scores = (
        db.query(MemberScoreDaily)
        .filter(
            MemberScoreDaily.member_id == member.id,
            MemberScoreDaily.date >= start,
            MemberScoreDaily.date <= end,
        )
        .order_by(MemberScoreDaily.date.asc())
        .all()
    )
    return {
        "start_date": start,
        "end_date": end,
        "scores": scores,
        "totals": {
            "points_checkin": sum(s.points_checkin for s in scores),
            "points_activity": sum(s.points_activity for s in scores),
            "points_bonus": sum(s.points_bonus for s in scores),
            "total_points": sum(s.total_points for s in scores),
            "days_scored": len(scores),
        },
        "current_streak": current_streak(db, member.id, end),
    }


def get_member_stats(db: Session, member: Member, today: Optional[date] = None) -> Dict[str, Any]:
    """Total points, check-ins, current streak and rank within the home club."""
    today = today or utcnow().date()

    total_points = int(
        db.query(func.coalesce(func.sum(MemberScoreDaily.total_points), 0))
        .filter(MemberScoreDaily.member_id == member.id)
        .scalar()
    )
    total_checkins = db.query(Checkin).filter(Checkin.member_id == member.id).count()

    club_rank = None
    club_size = 0
    if member.club_id is not None:
        totals = dict(
            db.query(Member.id, func.coalesce(func.sum(MemberScoreDaily.total_points), 0))
            .outerjoin(MemberScoreDaily, MemberScoreDaily.member_id == Member.id)
            .filter(Member.club_id == member.club_id, Member.status == EntityStatus.ACTIVE.value)
            .group_by(Member.id)
            .all()
        )
        club_size = len(totals)
        if member.id in totals:
            club_rank = 1 + sum(1 for points in totals.values() if int(points) > total_points)

    return {
        "member_id": member.id,
        "club_id": member.club_id,
        "total_points": total_points,
        "total_checkins": total_checkins,
        "current_streak": current_streak(db, member.id, today),
        "club_rank": club_rank,
        "club_members": club_size,
    }
