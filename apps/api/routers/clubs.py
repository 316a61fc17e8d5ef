"""
Club display endpoints.

The club's screen or kiosk polls for a fresh code; the secret rotates on
the first request after the rotation interval.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import Principal, require_role
from schemas import CheckinTokenResponse
from services.checkin_tokens import issue_token

router = APIRouter(prefix="/v1/clubs", tags=["Clubs"])


@router.get("/{club_id}/checkin-token", response_model=CheckinTokenResponse)
def get_checkin_token(
    club_id: UUID,
    principal: Principal = Depends(require_role(["club_admin", "admin", "kiosk"])),
    db: Session = Depends(get_db),
):
    return issue_token(db, club_id).to_dict()
