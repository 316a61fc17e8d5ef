"""
League audit trail: tier moves and season status changes.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models import LeagueAuditEvent

EVENT_TIER_PROMOTED = "tier_promoted"
EVENT_TIER_DEMOTED = "tier_demoted"
EVENT_SEASON_STATUS = "season_status"


def record_event(
    db: Session,
    event_type: str,
    season_id: Optional[UUID] = None,
    club_id: Optional[UUID] = None,
    period_start: Optional[date] = None,
    from_value: Optional[str] = None,
    to_value: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> LeagueAuditEvent:
    event = LeagueAuditEvent(
        event_type=event_type,
        season_id=season_id,
        club_id=club_id,
        period_start=period_start,
        from_value=from_value,
        to_value=to_value,
        payload=payload,
    )
    db.add(event)
    return event
