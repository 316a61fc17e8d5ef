"""
Member self-service: scores, stats and activity consent.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import get_current_member
from models import Member
from schemas import (
    ActivityConsentRequest,
    ActivityConsentResponse,
    MemberScoreDailyResponse,
    MemberStatsResponse,
    ScoreRangeResponse,
)
from services.activity_sync import set_activity_consent
from services.member_stats import get_member_stats, get_score_range, resolve_range

router = APIRouter(prefix="/v1/members/me", tags=["Members"])


@router.get("/scores", response_model=ScoreRangeResponse)
def get_my_scores(
    range_name: str = Query("week", alias="range", pattern="^(today|week|month|custom)$"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    """
    Daily scores for a range plus totals and the current streak.

    range=custom requires start_date and end_date.
    """
    try:
        start, end = resolve_range(range_name, start_date=start_date, end_date=end_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    result = get_score_range(db, member, start, end)
    result["scores"] = [MemberScoreDailyResponse.model_validate(s) for s in result["scores"]]
    return result


@router.get("/stats", response_model=MemberStatsResponse)
def get_my_stats(
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    return get_member_stats(db, member)


@router.post("/activity-consent", response_model=ActivityConsentResponse)
def update_activity_consent(
    payload: ActivityConsentRequest,
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    member = set_activity_consent(db, member, payload.granted)
    return ActivityConsentResponse(
        member_id=member.id,
        activity_consent=member.activity_consent,
        activity_consent_at=member.activity_consent_at,
    )
