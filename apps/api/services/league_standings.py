"""
Standings & League Engine

Snapshot:
- every club in the season gets a period total from the aggregation engine
- clubs are ranked within their tier by points descending; ties go to the
  lower club id (string order), which keeps reruns stable
- the top promotion_count of a tier are marked for promotion unless the
  tier is GOLD, the bottom demotion_count for demotion unless BRONZE;
  when the two ranges overlap promotion wins
- one LeagueStanding row per (season, club, period), upserted

Transition (weekly, once per period):
- gated by Season.last_transition_period with a conditional update, so a
  second run for the same week changes nothing
- promoted clubs move one tier up, demoted one tier down (GOLD and BRONZE
  are bounds); each move writes a league audit event
- only ACTIVE seasons transition; a COMPLETED season keeps its tiers

A weekly snapshot is frozen once its transition has been applied. A week
skipped by a missed tick is still snapshotted on backfill, but its tiers
are never moved once a later week has transitioned.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.database import upsert
from core.exceptions import SeasonNotFoundError
from models import (
    Club,
    ClubPeriodScore,
    LeagueStanding,
    LeagueTier,
    PeriodType,
    Season,
    SeasonClub,
    SeasonStatus,
)
from services.club_aggregation import compute_club_period_score, store_club_period_score
from services.league_audit import EVENT_TIER_DEMOTED, EVENT_TIER_PROMOTED, record_event
from services.periods import utcnow
from services.rulesets import RulesetParams

logger = logging.getLogger(__name__)


@dataclass
class StandingEntry:
    club_id: UUID
    tier: LeagueTier
    rank: int
    points: int
    promotion: bool = False
    demotion: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "club_id": str(self.club_id),
            "tier": self.tier.value,
            "rank": self.rank,
            "points": self.points,
            "promotion": self.promotion,
            "demotion": self.demotion,
        }


@dataclass
class TransitionResult:
    season_id: UUID
    period_start: date
    applied: bool
    promoted: int = 0
    demoted: int = 0
    skipped_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "season_id": str(self.season_id),
            "period_start": self.period_start.isoformat(),
            "applied": self.applied,
            "promoted": self.promoted,
            "demoted": self.demoted,
            "skipped_reason": self.skipped_reason,
        }


def rank_tier(
    tier: LeagueTier,
    club_points: Sequence[Tuple[UUID, int]],
    promotion_count: int,
    demotion_count: int,
) -> List[StandingEntry]:
    """Rank one tier's clubs and mark promotion/demotion."""
    ordered = sorted(club_points, key=lambda cp: (-cp[1], str(cp[0])))
    n = len(ordered)
    entries = []
    for i, (club_id, points) in enumerate(ordered):
        promotion = i < promotion_count and not tier.is_top
        demotion = i >= n - demotion_count and not tier.is_bottom and not promotion
        entries.append(StandingEntry(
            club_id=club_id,
            tier=tier,
            rank=i + 1,
            points=points,
            promotion=promotion,
            demotion=demotion,
        ))
    return entries


def _get_season(db: Session, season_id: UUID) -> Season:
    season = db.query(Season).filter(Season.id == season_id).first()
    if not season:
        raise SeasonNotFoundError(season_id)
    return season


def is_period_frozen(db: Session, season: Season, period_type: PeriodType, period_start: date) -> bool:
    """A transitioned week keeps its snapshot; a week that was never snapshotted can still be backfilled."""
    if PeriodType(period_type) != PeriodType.WEEK:
        return False
    if season.last_transition_period is None or season.last_transition_period < period_start:
        return False
    existing = (
        db.query(LeagueStanding.id)
        .filter(
            LeagueStanding.season_id == season.id,
            LeagueStanding.period_type == PeriodType.WEEK.value,
            LeagueStanding.period_start == period_start,
        )
        .first()
    )
    return existing is not None


def _load_entries(db: Session, season_id: UUID, period_type: PeriodType, period_start: date) -> List[StandingEntry]:
    rows = (
        db.query(LeagueStanding)
        .filter(
            LeagueStanding.season_id == season_id,
            LeagueStanding.period_type == PeriodType(period_type).value,
            LeagueStanding.period_start == period_start,
        )
        .all()
    )
    return [
        StandingEntry(
            club_id=r.club_id,
            tier=LeagueTier(r.tier),
            rank=r.rank,
            points=r.points,
            promotion=r.promotion,
            demotion=r.demotion,
        )
        for r in rows
    ]


def snapshot_standings(
    db: Session,
    season: Season,
    period_type: PeriodType,
    period_start: date,
    period_end: date,
    params: RulesetParams,
) -> List[StandingEntry]:
    """Compute and persist the period's club totals and per-tier standings."""
    if is_period_frozen(db, season, period_type, period_start):
        logger.info(f"Standings for season {season.id} period {period_start} already transitioned; keeping snapshot")
        return _load_entries(db, season.id, period_type, period_start)

    memberships = db.query(SeasonClub).filter(SeasonClub.season_id == season.id).all()
    computed_at = utcnow()

    breakdowns = {}
    by_tier: Dict[LeagueTier, List[Tuple[UUID, int]]] = {}
    for membership in memberships:
        breakdown = compute_club_period_score(
            db, membership.club_id, season.id, period_start, period_end, params
        )
        breakdowns[membership.club_id] = breakdown
        by_tier.setdefault(LeagueTier(membership.league_tier), []).append(
            (membership.club_id, breakdown.total_points)
        )

    entries: List[StandingEntry] = []
    for tier in reversed(LeagueTier.ordered()):
        entries.extend(rank_tier(
            tier, by_tier.get(tier, []), params.promotion_count, params.demotion_count
        ))

    overall = sorted(breakdowns.values(), key=lambda b: (-b.total_points, str(b.club_id)))
    for position, breakdown in enumerate(overall, start=1):
        store_club_period_score(db, breakdown, period_type, rank=position, computed_at=computed_at)

    for entry in entries:
        upsert(
            db,
            LeagueStanding,
            {
                "season_id": season.id,
                "club_id": entry.club_id,
                "period_type": PeriodType(period_type).value,
                "period_start": period_start,
                "period_end": period_end,
                "tier": entry.tier.value,
                "rank": entry.rank,
                "points": entry.points,
                "promotion": entry.promotion,
                "demotion": entry.demotion,
            },
            conflict_columns=["season_id", "club_id", "period_type", "period_start"],
            update_columns=["period_end", "tier", "rank", "points", "promotion", "demotion"],
        )

    logger.info(
        f"Snapshot {PeriodType(period_type).value} standings for season {season.id} "
        f"period {period_start}: {len(entries)} clubs"
    )
    return entries


def apply_tier_transitions(db: Session, season: Season, period_start: date) -> TransitionResult:
    """Apply the week's promotion/demotion flags once."""
    if season.status != SeasonStatus.ACTIVE.value:
        return TransitionResult(season.id, period_start, applied=False, skipped_reason="season_not_active")

    # Claim the period; zero rows means it was already applied
    claimed = (
        db.query(Season)
        .filter(
            Season.id == season.id,
            or_(
                Season.last_transition_period.is_(None),
                Season.last_transition_period < period_start,
            ),
        )
        .update(
            {Season.last_transition_period: period_start, Season.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    if claimed == 0:
        return TransitionResult(season.id, period_start, applied=False, skipped_reason="already_applied")

    result = TransitionResult(season.id, period_start, applied=True)
    for entry in _load_entries(db, season.id, PeriodType.WEEK, period_start):
        if entry.promotion:
            target, event_type = entry.tier.next_up(), EVENT_TIER_PROMOTED
        elif entry.demotion:
            target, event_type = entry.tier.next_down(), EVENT_TIER_DEMOTED
        else:
            continue
        if target == entry.tier:
            continue

        moved = (
            db.query(SeasonClub)
            .filter(
                SeasonClub.season_id == season.id,
                SeasonClub.club_id == entry.club_id,
                SeasonClub.league_tier == entry.tier.value,
            )
            .update({SeasonClub.league_tier: target.value}, synchronize_session=False)
        )
        if not moved:
            continue

        record_event(
            db,
            event_type,
            season_id=season.id,
            club_id=entry.club_id,
            period_start=period_start,
            from_value=entry.tier.value,
            to_value=target.value,
            payload={"rank": entry.rank, "points": entry.points},
        )
        if event_type == EVENT_TIER_PROMOTED:
            result.promoted += 1
        else:
            result.demoted += 1
        logger.info(f"Club {entry.club_id} {event_type} {entry.tier.value} -> {target.value} in season {season.id}")

    db.expire_all()
    return result


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def latest_period_start(db: Session, season_id: UUID, period_type: PeriodType) -> Optional[date]:
    row = (
        db.query(LeagueStanding.period_start)
        .filter(
            LeagueStanding.season_id == season_id,
            LeagueStanding.period_type == PeriodType(period_type).value,
        )
        .order_by(LeagueStanding.period_start.desc())
        .first()
    )
    return row[0] if row else None


def _standing_row(standing: LeagueStanding, club_name: Optional[str], score: Optional[ClubPeriodScore]) -> Dict[str, Any]:
    return {
        "club_id": str(standing.club_id),
        "club_name": club_name,
        "tier": standing.tier,
        "rank": standing.rank,
        "points": standing.points,
        "promotion": standing.promotion,
        "demotion": standing.demotion,
        "overall_rank": score.rank if score else None,
        "contributor_count": score.contributor_count if score else 0,
        "breakdown": score.breakdown if score else {},
    }


def get_standings(
    db: Session,
    season_id: UUID,
    period_type: PeriodType = PeriodType.WEEK,
    period_start: Optional[date] = None,
    tier: Optional[LeagueTier] = None,
) -> Dict[str, Any]:
    """Ranked standings for a period (latest by default), GOLD first then rank."""
    season = _get_season(db, season_id)
    period_type = PeriodType(period_type)
    period_start = period_start or latest_period_start(db, season.id, period_type)

    result: Dict[str, Any] = {
        "season_id": str(season.id),
        "period_type": period_type.value,
        "period_start": period_start.isoformat() if period_start else None,
        "period_end": None,
        "standings": [],
    }
    if period_start is None:
        return result

    query = (
        db.query(LeagueStanding, Club.name, ClubPeriodScore)
        .join(Club, Club.id == LeagueStanding.club_id)
        .outerjoin(
            ClubPeriodScore,
            (ClubPeriodScore.club_id == LeagueStanding.club_id)
            & (ClubPeriodScore.season_id == LeagueStanding.season_id)
            & (ClubPeriodScore.period_type == LeagueStanding.period_type)
            & (ClubPeriodScore.period_start == LeagueStanding.period_start),
        )
        .filter(
            LeagueStanding.season_id == season.id,
            LeagueStanding.period_type == period_type.value,
            LeagueStanding.period_start == period_start,
        )
    )
    if tier is not None:
        query = query.filter(LeagueStanding.tier == LeagueTier(tier).value)

    rows = query.all()
    rows.sort(key=lambda r: (-LeagueTier(r[0].tier).level, r[0].rank))
    if rows:
        result["period_end"] = rows[0][0].period_end.isoformat()
    result["standings"] = [_standing_row(s, name, score) for s, name, score in rows]
    return result


def get_club_standing(
    db: Session,
    season_id: UUID,
    club_id: UUID,
    period_type: PeriodType = PeriodType.WEEK,
) -> Optional[Dict[str, Any]]:
    """A club's most recent standing in a season plus its current tier."""
    _get_season(db, season_id)
    membership = (
        db.query(SeasonClub)
        .filter(SeasonClub.season_id == season_id, SeasonClub.club_id == club_id)
        .first()
    )
    if membership is None:
        return None

    standing = (
        db.query(LeagueStanding)
        .filter(
            LeagueStanding.season_id == season_id,
            LeagueStanding.club_id == club_id,
            LeagueStanding.period_type == PeriodType(period_type).value,
        )
        .order_by(LeagueStanding.period_start.desc())
        .first()
    )
    return {
        "season_id": str(season_id),
        "club_id": str(club_id),
        "current_tier": membership.league_tier,
        "period_start": standing.period_start.isoformat() if standing else None,
        "tier": standing.tier if standing else None,
        "rank": standing.rank if standing else None,
        "points": standing.points if standing else None,
        "promotion": standing.promotion if standing else False,
        "demotion": standing.demotion if standing else False,
    }
