"""
League Standings API Router

Read-only views over the snapshots written by the weekly/monthly runs.
Responses are cached in Redis until the next snapshot for the season.
"""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.cache import get_cache, set_cache, standings_cache_key
from core.config import settings
from core.database import get_db
from core.auth import Principal, get_current_principal
from core.exceptions import ClubNotFoundError
from models import LeagueTier, PeriodType
from schemas import ClubStandingResponse, StandingsResponse
from services.league_standings import get_club_standing, get_standings

router = APIRouter(prefix="/v1/seasons", tags=["Standings"])


@router.get("/{season_id}/standings", response_model=StandingsResponse)
def list_standings(
    season_id: UUID,
    period_type: PeriodType = PeriodType.WEEK,
    period_start: Optional[date] = None,
    tier: Optional[LeagueTier] = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Ranked standings, GOLD first, for the latest (or given) period."""
    key = standings_cache_key(
        season_id,
        period_type=period_type.value,
        period_start=period_start,
        tier=tier.value if tier else None,
    )
    cached = get_cache(key)
    if cached is not None:
        return cached

    result = get_standings(db, season_id, period_type=period_type, period_start=period_start, tier=tier)
    set_cache(key, result, ttl=settings.CACHE_TTL_STANDINGS)
    return result


@router.get("/{season_id}/clubs/{club_id}/standing", response_model=ClubStandingResponse)
def get_standing_for_club(
    season_id: UUID,
    club_id: UUID,
    period_type: PeriodType = PeriodType.WEEK,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    standing = get_club_standing(db, season_id, club_id, period_type=period_type)
    if standing is None:
        raise ClubNotFoundError(club_id)
    return standing
