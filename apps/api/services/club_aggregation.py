"""
Club Aggregation Engine

Rolls member daily scores up into one club total for a period.

Hybrid mode (ruleset.hybrid_enabled):
- home raw    = sum of scores of members whose home club is the club
- visitor raw = sum of scores on days a member checked in at the club,
                whoever the member is (home members' local check-ins
                count in both sums)
- total       = round(home raw * home weight) + round(visitor raw * visitor weight)
  Each component is rounded half-up on its own.
- contributor_count counts each member once, whichever sums they are in

Top-N mode: the club's active home members ranked by period total
(ties by member id), only the top ruleset.top_n_contributors counted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from core.database import upsert
from models import Checkin, ClubPeriodScore, EntityStatus, Member, MemberScoreDaily, PeriodType
from services.rulesets import RulesetParams
from services.periods import utcnow

logger = logging.getLogger(__name__)

MODE_HYBRID = "hybrid"
MODE_TOP_N = "top_n"


@dataclass
class ClubScoreBreakdown:
    club_id: UUID
    season_id: UUID
    period_start: date
    period_end: date
    mode: str
    total_points: int
    contributor_count: int
    home_raw: int = 0
    visitor_raw: int = 0
    home_weighted: int = 0
    visitor_weighted: int = 0
    home_contributors: int = 0
    visitor_contributors: int = 0
    top_contributors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "mode": self.mode,
            "total_points": self.total_points,
            "contributor_count": self.contributor_count,
        }
        if self.mode == MODE_HYBRID:
            data.update({
                "home_raw": self.home_raw,
                "visitor_raw": self.visitor_raw,
                "home_weighted": self.home_weighted,
                "visitor_weighted": self.visitor_weighted,
                "home_contributors": self.home_contributors,
                "visitor_contributors": self.visitor_contributors,
            })
        else:
            data["top_contributors"] = self.top_contributors
        return data


def weighted(raw: int, weight: float) -> int:
    """round(raw * weight), half-up, without float drift (10000 * 0.7 == 7000)."""
    return int((Decimal(raw) * Decimal(str(weight))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _home_totals(db: Session, club_id: UUID, start: date, end: date):
    return (
        db.query(
            func.coalesce(func.sum(MemberScoreDaily.total_points), 0),
            func.count(func.distinct(MemberScoreDaily.member_id)),
        )
        .join(Member, Member.id == MemberScoreDaily.member_id)
        .filter(
            Member.club_id == club_id,
            MemberScoreDaily.date >= start,
            MemberScoreDaily.date <= end,
        )
        .one()
    )


def _visitor_totals(db: Session, club_id: UUID, start: date, end: date):
    return (
        db.query(
            func.coalesce(func.sum(MemberScoreDaily.total_points), 0),
            func.count(func.distinct(MemberScoreDaily.member_id)),
        )
        .join(
            Checkin,
            and_(
                Checkin.member_id == MemberScoreDaily.member_id,
                Checkin.checkin_date == MemberScoreDaily.date,
            ),
        )
        .filter(
            Checkin.club_id == club_id,
            MemberScoreDaily.date >= start,
            MemberScoreDaily.date <= end,
        )
        .one()
    )


def _distinct_contributors(db: Session, club_id: UUID, start: date, end: date) -> int:
    """Members in either component, each counted once."""
    home_ids = (
        db.query(MemberScoreDaily.member_id)
        .join(Member, Member.id == MemberScoreDaily.member_id)
        .filter(Member.club_id == club_id, MemberScoreDaily.date >= start, MemberScoreDaily.date <= end)
    )
    visitor_ids = (
        db.query(MemberScoreDaily.member_id)
        .join(
            Checkin,
            and_(
                Checkin.member_id == MemberScoreDaily.member_id,
                Checkin.checkin_date == MemberScoreDaily.date,
            ),
        )
        .filter(Checkin.club_id == club_id, MemberScoreDaily.date >= start, MemberScoreDaily.date <= end)
    )
    return len({row[0] for row in home_ids.union(visitor_ids).all()})


def _hybrid_breakdown(
    db: Session, club_id: UUID, season_id: UUID, start: date, end: date, params: RulesetParams
) -> ClubScoreBreakdown:
    home_raw, home_count = _home_totals(db, club_id, start, end)
    visitor_raw, visitor_count = _visitor_totals(db, club_id, start, end)
    home_raw, visitor_raw = int(home_raw), int(visitor_raw)

    home_weighted = weighted(home_raw, params.home_weight)
    visitor_weighted = weighted(visitor_raw, params.visitor_weight)
    return ClubScoreBreakdown(
        club_id=club_id,
        season_id=season_id,
        period_start=start,
        period_end=end,
        mode=MODE_HYBRID,
        total_points=home_weighted + visitor_weighted,
        contributor_count=_distinct_contributors(db, club_id, start, end),
        home_raw=home_raw,
        visitor_raw=visitor_raw,
        home_weighted=home_weighted,
        visitor_weighted=visitor_weighted,
        home_contributors=int(home_count),
        visitor_contributors=int(visitor_count),
    )


def _top_n_breakdown(
    db: Session, club_id: UUID, season_id: UUID, start: date, end: date, params: RulesetParams
) -> ClubScoreBreakdown:
    rows = (
        db.query(MemberScoreDaily.member_id, func.sum(MemberScoreDaily.total_points))
        .join(Member, Member.id == MemberScoreDaily.member_id)
        .filter(
            Member.club_id == club_id,
            Member.status == EntityStatus.ACTIVE.value,
            MemberScoreDaily.date >= start,
            MemberScoreDaily.date <= end,
        )
        .group_by(MemberScoreDaily.member_id)
        .all()
    )
    ranked = sorted(
        ((member_id, int(points)) for member_id, points in rows if points and int(points) > 0),
        key=lambda r: (-r[1], str(r[0])),
    )
    top = ranked[: params.top_n_contributors]

    return ClubScoreBreakdown(
        club_id=club_id,
        season_id=season_id,
        period_start=start,
        period_end=end,
        mode=MODE_TOP_N,
        total_points=sum(points for _, points in top),
        contributor_count=len(top),
        top_contributors=[{"member_id": str(m), "points": p} for m, p in top],
    )


def compute_club_period_score(
    db: Session,
    club_id: UUID,
    season_id: UUID,
    period_start: date,
    period_end: date,
    params: RulesetParams,
) -> ClubScoreBreakdown:
    if params.hybrid_enabled:
        return _hybrid_breakdown(db, club_id, season_id, period_start, period_end, params)
    return _top_n_breakdown(db, club_id, season_id, period_start, period_end, params)


def store_club_period_score(
    db: Session,
    breakdown: ClubScoreBreakdown,
    period_type: PeriodType,
    rank: Optional[int] = None,
    computed_at: Optional[datetime] = None,
) -> None:
    """Upsert the club's period row. rank=None keeps any rank a snapshot already wrote."""
    update_columns = ["period_end", "total_points", "contributor_count", "breakdown", "computed_at"]
    if rank is not None:
        update_columns.append("rank")

    upsert(
        db,
        ClubPeriodScore,
        {
            "club_id": breakdown.club_id,
            "season_id": breakdown.season_id,
            "period_type": PeriodType(period_type).value,
            "period_start": breakdown.period_start,
            "period_end": breakdown.period_end,
            "total_points": breakdown.total_points,
            "contributor_count": breakdown.contributor_count,
            "rank": rank,
            "breakdown": breakdown.to_dict(),
            "computed_at": computed_at or utcnow(),
        },
        conflict_columns=["club_id", "season_id", "period_type", "period_start"],
        update_columns=update_columns,
    )
