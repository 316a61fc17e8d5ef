"""
Rotating check-in tokens.

Each club owns a random secret that rotates lazily: the first issuance
after the rotation interval replaces the secret and records the rotation
time before the token is derived, so a token is always bound to the
currently stored secret.

token = HMAC-SHA256(key=club secret, msg="{club_id}:{issued_at}:{salt}")

Validation fails closed:
- issued_at + interval < now          -> TOKEN_EXPIRED ("scan again")
- issued_at too far in the future     -> TOKEN_INVALID
- mismatch with the current secret    -> TOKEN_INVALID ("tampered code")
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ClubNotFoundError, TokenExpiredError, TokenInvalidError
from models import Club, EntityStatus
from services.periods import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    club_id: UUID
    token: str
    issued_at: int  # epoch seconds
    expires_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "club_id": str(self.club_id),
            "token": self.token,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
        }


def rotation_interval_seconds() -> int:
    return settings.CHECKIN_TOKEN_ROTATION_MINUTES * 60


def compute_token(club_id: UUID, issued_at: int, secret: str) -> str:
    message = f"{club_id}:{issued_at}:{settings.CHECKIN_TOKEN_SALT}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _get_club(db: Session, club_id: UUID) -> Club:
    club = db.query(Club).filter(Club.id == club_id).first()
    if not club:
        raise ClubNotFoundError(club_id)
    return club


def needs_rotation(club: Club, now: datetime) -> bool:
    if not club.checkin_secret or club.secret_rotated_at is None:
        return True
    elapsed = now - as_utc(club.secret_rotated_at)
    return elapsed >= timedelta(seconds=rotation_interval_seconds())


def rotate_secret(db: Session, club: Club, now: datetime) -> None:
    """Replace the club secret. Tokens derived from the old secret stop validating."""
    club.checkin_secret = secrets.token_hex(settings.CHECKIN_TOKEN_SECRET_BYTES)
    club.secret_rotated_at = now
    db.flush()
    logger.info(
        f"Rotated check-in secret for club {club.id}",
        extra={"extra_fields": {"club_id": str(club.id)}},
    )


def issue_token(db: Session, club_id: UUID, now: Optional[datetime] = None) -> IssuedToken:
    """Issue a token for a club display, rotating the secret first when due."""
    now = as_utc(now or utcnow())
    club = _get_club(db, club_id)
    if club.status != EntityStatus.ACTIVE.value:
        raise ClubNotFoundError(club_id)

    if needs_rotation(club, now):
        rotate_secret(db, club, now)

    issued_at = int(now.timestamp())
    return IssuedToken(
        club_id=club.id,
        token=compute_token(club.id, issued_at, club.checkin_secret),
        issued_at=issued_at,
        expires_at=issued_at + rotation_interval_seconds(),
    )


def validate_token(
    db: Session,
    club_id: UUID,
    token: str,
    issued_at: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Validate a scanned token against the club's current secret.

    Returns True or raises TokenExpiredError / TokenInvalidError.
    """
    now = as_utc(now or utcnow())
    now_ts = int(now.timestamp())
    club = _get_club(db, club_id)

    if now_ts > issued_at + rotation_interval_seconds():
        raise TokenExpiredError()

    if issued_at > now_ts + settings.CHECKIN_TOKEN_CLOCK_SKEW_S:
        raise TokenInvalidError()

    if club.status != EntityStatus.ACTIVE.value or not club.checkin_secret:
        raise TokenInvalidError("Club is not accepting check-ins")

    expected = compute_token(club.id, issued_at, club.checkin_secret)
    if not hmac.compare_digest(expected, token or ""):
        raise TokenInvalidError()

    return True
