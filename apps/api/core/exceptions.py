"""
Custom exception classes and error handling.

Every error the check-in, sync and league paths can surface carries a
stable error_code the mobile client switches on (e.g. TOKEN_EXPIRED
means "scan again", TOKEN_INVALID means "tampered code").
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str, error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code=error_code
        )


# --- Check-in token protocol ---

class TokenExpiredError(APIException):
    """The scanned code is past its rotation window."""

    def __init__(self, detail: str = "Check-in code expired, scan again"):
        super().__init__(
            status_code=status.HTTP_410_GONE,
            detail=detail,
            error_code="TOKEN_EXPIRED"
        )


class TokenInvalidError(APIException):
    """The scanned code does not match the club's current secret."""

    def __init__(self, detail: str = "Invalid check-in code"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="TOKEN_INVALID"
        )


class AlreadyCheckedInError(APIException):
    """One check-in per member per calendar day, across all clubs."""

    def __init__(self, detail: str = "Already checked in today"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="ALREADY_CHECKED_IN"
        )


# --- Lookups ---

class ClubNotFoundError(NotFoundError):
    def __init__(self, identifier: Any):
        super().__init__("Club", str(identifier), error_code="CLUB_NOT_FOUND")


class SeasonNotFoundError(NotFoundError):
    def __init__(self, identifier: Any):
        super().__init__("Season", str(identifier), error_code="SEASON_NOT_FOUND")


class MemberNotFoundError(NotFoundError):
    def __init__(self, identifier: Any):
        super().__init__("Member", str(identifier), error_code="MEMBER_NOT_FOUND")


# --- Batch computation ---

class RulesetMissingError(APIException):
    """No ruleset can be resolved; a scoring run cannot start without point values."""

    def __init__(self, detail: str = "No ruleset found"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="RULESET_MISSING"
        )


class ComputationFailedError(APIException):
    """A single member/club computation failed inside a batch run."""

    def __init__(self, entity_id: Any, detail: Optional[str] = None):
        self.entity_id = str(entity_id)
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail or f"Computation failed for {entity_id}",
            error_code="COMPUTATION_FAILED"
        )


class ConsentRequiredError(APIException):
    """Activity data is only accepted after the member granted consent."""

    def __init__(self, detail: str = "Activity data consent required"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="CONSENT_REQUIRED"
        )


class InvalidTransitionError(APIException):
    """Season status change not allowed from the current state."""

    def __init__(self, current: str, target: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move season from {current} to {target}",
            error_code="INVALID_TRANSITION"
        )
