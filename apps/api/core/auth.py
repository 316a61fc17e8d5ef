"""
Authentication and authorization dependencies.

Provides FastAPI dependencies for:
- Decoding the caller's bearer token into a Principal
- Resolving the authenticated Member
- Role-based access control (club displays, kiosks, admins)
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.database import get_db
from core.security import decode_access_token
from models import Member, EntityStatus

# auto_error=False so missing credentials return 401 (not 403)
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str
    member_id: Optional[UUID] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """
    Decode the bearer token.

    Claims: sub (user id), role, member_id (optional; falls back to sub
    for member tokens).
    """
    if not credentials:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    role = payload.get("role", "member")
    raw_member_id = payload.get("member_id") or (user_id if role == "member" else None)
    member_id = None
    if raw_member_id:
        try:
            member_id = UUID(str(raw_member_id))
        except ValueError:
            raise _unauthorized("Invalid member ID format")

    return Principal(user_id=str(user_id), role=role, member_id=member_id)


def get_current_member(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Member:
    """Resolve the authenticated member. 401 when the token carries no member."""
    if principal.member_id is None:
        raise _unauthorized("Token is not bound to a member")

    member = db.query(Member).filter(Member.id == principal.member_id).first()
    if not member:
        raise _unauthorized("Member not found")

    if member.status == EntityStatus.DELETED.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Member account is deleted",
        )
    return member


def require_role(allowed_roles: list[str]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin-only")
        def admin_endpoint(principal: Principal = Depends(require_role(["admin"]))):
            ...
    """
    def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {allowed_roles}",
            )
        return principal

    return role_checker


def require_admin(
    principal: Principal = Depends(require_role(["admin"]))
) -> Principal:
    """Require admin role."""
    return principal
