"""
Batch runs behind the scheduled tasks, operator scripts and admin triggers.

Each run:
- resolves its ruleset(s) before touching any entity (RulesetMissingError aborts)
- processes members / seasons independently; one failure is rolled back,
  logged with the entity id and counted, and the run continues
- returns a summary dict

Every write is an upsert or a conditional update, so any run can be
repeated for the same date and ends in the same state.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.cache import invalidate_standings_cache
from core.exceptions import ComputationFailedError
from models import EntityStatus, Member, PeriodType, Season, SeasonClub, SeasonStatus
from services.club_aggregation import compute_club_period_score, store_club_period_score
from services.league_standings import apply_tier_transitions, snapshot_standings
from services.member_scoring import compute_daily_score
from services.periods import previous_month_bounds, previous_week_bounds, week_bounds
from services.rulesets import RulesetParams, resolve_ruleset

logger = logging.getLogger(__name__)


def _log_entity_failure(kind: str, entity_id: Any, e: Exception) -> None:
    failure = ComputationFailedError(entity_id, detail=f"{kind} computation failed for {entity_id}: {e}")
    logger.error(
        failure.detail,
        exc_info=True,
        extra={"extra_fields": {"entity_type": kind, "entity_id": failure.entity_id, "error_code": failure.error_code}},
    )


def _seasons_covering(db: Session, day: date) -> List[Season]:
    return (
        db.query(Season)
        .filter(
            Season.status == SeasonStatus.ACTIVE.value,
            Season.start_date <= day,
            Season.end_date >= day,
        )
        .all()
    )


def _seasons_overlapping(db: Session, start: date, end: date) -> List[Season]:
    # COMPLETED seasons still get the snapshot of their final period
    return (
        db.query(Season)
        .filter(
            Season.status.in_([SeasonStatus.ACTIVE.value, SeasonStatus.COMPLETED.value]),
            Season.start_date <= end,
            Season.end_date >= start,
        )
        .all()
    )


def _resolve_season_rulesets(
    db: Session, seasons: List[Season], ruleset_id: Optional[UUID]
) -> Dict[UUID, RulesetParams]:
    return {season.id: resolve_ruleset(db, ruleset_id=ruleset_id, season=season) for season in seasons}


def refresh_club_week_scores(
    db: Session,
    day: date,
    ruleset_id: Optional[UUID] = None,
) -> Dict[str, int]:
    """Recompute the week-to-date total for every club of every active season covering `day`."""
    seasons = _seasons_covering(db, day)
    rulesets = _resolve_season_rulesets(db, seasons, ruleset_id)
    week_start, week_end = week_bounds(day)

    refreshed = 0
    failed = 0
    for season in seasons:
        club_ids = [
            row[0]
            for row in db.query(SeasonClub.club_id).filter(SeasonClub.season_id == season.id).all()
        ]
        for club_id in club_ids:
            try:
                breakdown = compute_club_period_score(
                    db, club_id, season.id, week_start, week_end, rulesets[season.id]
                )
                store_club_period_score(db, breakdown, PeriodType.WEEK)
                db.commit()
                refreshed += 1
            except Exception as e:
                db.rollback()
                failed += 1
                _log_entity_failure("club", club_id, e)

    return {"clubs_refreshed": refreshed, "clubs_failed": failed}


def run_daily_scoring(
    db: Session,
    target_date: date,
    ruleset_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """Score every active member for target_date, then refresh club week totals."""
    params = resolve_ruleset(db, ruleset_id=ruleset_id)

    member_ids = [
        row[0]
        for row in db.query(Member.id)
        .filter(Member.status == EntityStatus.ACTIVE.value)
        .order_by(Member.id)
        .all()
    ]
    logger.info(f"Daily scoring for {target_date}: {len(member_ids)} members, ruleset {params.ruleset_id}")

    scored = 0
    failed_ids: List[str] = []
    for member_id in member_ids:
        try:
            compute_daily_score(db, member_id, target_date, params)
            db.commit()
            scored += 1
        except Exception as e:
            db.rollback()
            failed_ids.append(str(member_id))
            _log_entity_failure("member", member_id, e)

    club_summary = refresh_club_week_scores(db, target_date, ruleset_id=ruleset_id)

    logger.info(
        f"Daily scoring complete for {target_date}: scored={scored} failed={len(failed_ids)} "
        f"clubs_refreshed={club_summary['clubs_refreshed']}"
    )
    return {
        "status": "success",
        "date": target_date.isoformat(),
        "ruleset_id": str(params.ruleset_id) if params.ruleset_id else None,
        "members_scored": scored,
        "members_failed": len(failed_ids),
        "failed_member_ids": failed_ids,
        **club_summary,
    }


def run_period_standings(
    db: Session,
    period_type: PeriodType,
    period_start: date,
    period_end: date,
    apply_transitions: bool,
    ruleset_id: Optional[UUID] = None,
    season_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """Snapshot standings (and optionally apply tier transitions) for each season."""
    seasons = _seasons_overlapping(db, period_start, period_end)
    if season_id is not None:
        seasons = [s for s in seasons if s.id == season_id]
    rulesets = _resolve_season_rulesets(db, seasons, ruleset_id)

    logger.info(
        f"{PeriodType(period_type).value} standings for {period_start}..{period_end}: {len(seasons)} seasons"
    )

    processed = 0
    failed_ids: List[str] = []
    transitions: List[Dict[str, Any]] = []
    for season in seasons:
        try:
            snapshot_standings(db, season, period_type, period_start, period_end, rulesets[season.id])
            if apply_transitions:
                transitions.append(apply_tier_transitions(db, season, period_start).to_dict())
            db.commit()
            invalidate_standings_cache(season.id)
            processed += 1
        except Exception as e:
            db.rollback()
            failed_ids.append(str(season.id))
            _log_entity_failure("season", season.id, e)

    return {
        "status": "success",
        "period_type": PeriodType(period_type).value,
        "period_start": period_start.isoformat(),
        "period_end": period_end.isoformat(),
        "seasons_processed": processed,
        "seasons_failed": len(failed_ids),
        "failed_season_ids": failed_ids,
        "transitions": transitions,
    }


def run_weekly_standings(
    db: Session,
    reference_date: date,
    ruleset_id: Optional[UUID] = None,
    season_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """Close the ISO week before reference_date: snapshot, then tier transition."""
    start, end = previous_week_bounds(reference_date)
    return run_period_standings(
        db, PeriodType.WEEK, start, end, apply_transitions=True,
        ruleset_id=ruleset_id, season_id=season_id,
    )


def run_monthly_standings(
    db: Session,
    reference_date: date,
    ruleset_id: Optional[UUID] = None,
    season_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    """Snapshot the month before reference_date. Tiers only move weekly."""
    start, end = previous_month_bounds(reference_date)
    return run_period_standings(
        db, PeriodType.MONTH, start, end, apply_transitions=False,
        ruleset_id=ruleset_id, season_id=season_id,
    )
