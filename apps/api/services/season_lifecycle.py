"""
Season Lifecycle

Date-driven status machine:
- DRAFT -> ACTIVE      when today >= start_date
- ACTIVE -> COMPLETED  when today > end_date
- any non-cancelled -> CANCELLED (manual, terminal)

next_status() is a pure function of (today, season). The scheduled run
applies it through conditional updates that match zero rows when a season
has already moved, so repeated or missed ticks converge on the same state.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.exceptions import InvalidTransitionError, SeasonNotFoundError
from models import Season, SeasonStatus
from services.league_audit import EVENT_SEASON_STATUS, record_event
from services.periods import utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    SeasonStatus.DRAFT: {SeasonStatus.ACTIVE, SeasonStatus.CANCELLED},
    SeasonStatus.ACTIVE: {SeasonStatus.COMPLETED, SeasonStatus.CANCELLED},
    SeasonStatus.COMPLETED: {SeasonStatus.CANCELLED},
    SeasonStatus.CANCELLED: set(),
}


def can_transition(current: SeasonStatus, target: SeasonStatus) -> bool:
    return SeasonStatus(target) in ALLOWED_TRANSITIONS[SeasonStatus(current)]


def next_status(today: date, season: Season) -> SeasonStatus:
    """Status the season should hold on `today`."""
    status = SeasonStatus(season.status)
    if status == SeasonStatus.DRAFT and today >= season.start_date:
        status = SeasonStatus.ACTIVE
    if status == SeasonStatus.ACTIVE and today > season.end_date:
        status = SeasonStatus.COMPLETED
    return status


def _conditional_move(
    db: Session,
    season_id: UUID,
    expected: SeasonStatus,
    target: SeasonStatus,
) -> bool:
    updated = (
        db.query(Season)
        .filter(Season.id == season_id, Season.status == expected.value)
        .update(
            {Season.status: target.value, Season.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    if updated:
        record_event(
            db,
            EVENT_SEASON_STATUS,
            season_id=season_id,
            from_value=expected.value,
            to_value=target.value,
        )
    return bool(updated)


def run_season_lifecycle(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    """Activate due drafts and complete finished seasons."""
    today = today or utcnow().date()

    to_activate: List[UUID] = [
        row[0]
        for row in db.query(Season.id)
        .filter(Season.status == SeasonStatus.DRAFT.value, Season.start_date <= today)
        .all()
    ]
    activated = sum(
        1 for season_id in to_activate
        if _conditional_move(db, season_id, SeasonStatus.DRAFT, SeasonStatus.ACTIVE)
    )

    # Runs after activation so a draft whose whole range has passed completes in one tick
    to_complete: List[UUID] = [
        row[0]
        for row in db.query(Season.id)
        .filter(Season.status == SeasonStatus.ACTIVE.value, Season.end_date < today)
        .all()
    ]
    completed = sum(
        1 for season_id in to_complete
        if _conditional_move(db, season_id, SeasonStatus.ACTIVE, SeasonStatus.COMPLETED)
    )

    db.commit()
    db.expire_all()
    logger.info(f"Season lifecycle for {today}: activated={activated} completed={completed}")
    return {
        "status": "success",
        "date": today.isoformat(),
        "activated": activated,
        "completed": completed,
    }


def cancel_season(db: Session, season_id: UUID) -> Season:
    """Move a season to CANCELLED. Cancelling a cancelled season is a no-op."""
    season = db.query(Season).filter(Season.id == season_id).first()
    if not season:
        raise SeasonNotFoundError(season_id)

    current = SeasonStatus(season.status)
    if current == SeasonStatus.CANCELLED:
        return season
    if not can_transition(current, SeasonStatus.CANCELLED):
        raise InvalidTransitionError(current.value, SeasonStatus.CANCELLED.value)

    if _conditional_move(db, season.id, current, SeasonStatus.CANCELLED):
        logger.info(f"Season {season.id} cancelled (was {current.value})")
    db.flush()
    db.refresh(season)
    return season
