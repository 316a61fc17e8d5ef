"""
Check-in recording.

A scan is accepted when its token validates and the member has no
check-in yet on the same UTC calendar day at any club. The only side
effects are the insert and, when the scanned club differs from the
member's home club, the home-club reassignment. Scoring happens later in
the daily batch.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import AlreadyCheckedInError, MemberNotFoundError
from models import Checkin, CheckinMethod, Member
from services.checkin_tokens import validate_token
from services.periods import as_utc, utcnow

logger = logging.getLogger(__name__)


def _get_member(db: Session, member_id: UUID) -> Member:
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise MemberNotFoundError(member_id)
    return member


def get_checkin_for_day(db: Session, member_id: UUID, day: date) -> Optional[Checkin]:
    return (
        db.query(Checkin)
        .filter(Checkin.member_id == member_id, Checkin.checkin_date == day)
        .first()
    )


def check_in(
    db: Session,
    member_id: UUID,
    club_id: UUID,
    token: str,
    issued_at: int,
    now: Optional[datetime] = None,
    method: CheckinMethod = CheckinMethod.QR,
    device_info: Optional[Dict[str, Any]] = None,
) -> Checkin:
    now = as_utc(now or utcnow())
    member = _get_member(db, member_id)

    validate_token(db, club_id, token, issued_at, now=now)

    today = now.date()
    if get_checkin_for_day(db, member.id, today) is not None:
        raise AlreadyCheckedInError()

    checkin = Checkin(
        member_id=member.id,
        club_id=club_id,
        checkin_date=today,
        checked_in_at=now,
        method=CheckinMethod(method).value,
        token_issued_at=issued_at,
        device_info=device_info,
    )
    db.add(checkin)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent scan for the same member-day won the unique key
        db.rollback()
        raise AlreadyCheckedInError()

    if member.club_id != club_id:
        logger.info(
            f"Member {member.id} home club changed {member.club_id} -> {club_id}",
            extra={"extra_fields": {"member_id": str(member.id), "club_id": str(club_id)}},
        )
        member.club_id = club_id
        db.flush()

    return checkin


def get_checkin_history(db: Session, member_id: UUID, days: int = 30, today: Optional[date] = None) -> List[Checkin]:
    today = today or utcnow().date()
    since = today - timedelta(days=days - 1)
    return (
        db.query(Checkin)
        .filter(Checkin.member_id == member_id, Checkin.checkin_date >= since)
        .order_by(Checkin.checkin_date.desc())
        .all()
    )
