"""
Check-in API Router

Members scan a club's rotating code and post it here. One check-in per
member per day; scoring happens in the nightly batch.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from core.database import get_db
from core.auth import get_current_member
from models import Member
from schemas import CheckinCreate, CheckinHistoryItem, CheckinResponse, CheckinTodayResponse
from services.checkin_recorder import check_in, get_checkin_for_day, get_checkin_history
from services.periods import utcnow

router = APIRouter(prefix="/v1/checkins", tags=["Check-ins"])


@router.post("", response_model=CheckinResponse, status_code=status.HTTP_201_CREATED)
def create_checkin(
    payload: CheckinCreate,
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    checkin = check_in(
        db,
        member_id=member.id,
        club_id=payload.club_id,
        token=payload.token,
        issued_at=payload.issued_at,
        method=payload.method,
        device_info=payload.device_info,
    )
    return CheckinResponse(
        checkin_id=checkin.id,
        timestamp=checkin.checked_in_at,
        club_id=checkin.club_id,
    )


@router.get("/today", response_model=CheckinTodayResponse)
def get_today_checkin(
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    checkin = get_checkin_for_day(db, member.id, utcnow().date())
    return CheckinTodayResponse(
        checked_in=checkin is not None,
        checkin=CheckinHistoryItem.model_validate(checkin) if checkin else None,
    )


@router.get("/history", response_model=List[CheckinHistoryItem])
def list_checkins(
    days: int = Query(30, ge=1, le=365),
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    return get_checkin_history(db, member.id, days=days)
