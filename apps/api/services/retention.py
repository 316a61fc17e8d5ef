"""
Retention cleanup for the league audit trail.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from core.config import settings
from models import LeagueAuditEvent
from services.periods import as_utc, utcnow

logger = logging.getLogger(__name__)


def purge_audit_events(
    db: Session,
    older_than_days: Optional[int] = None,
    now: Optional[datetime] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    days = older_than_days or settings.AUDIT_RETENTION_DAYS
    cutoff = as_utc(now or utcnow()) - timedelta(days=days)

    query = db.query(LeagueAuditEvent).filter(LeagueAuditEvent.created_at < cutoff)
    matched = query.count()

    deleted = 0
    if not dry_run and matched:
        deleted = query.delete(synchronize_session=False)
        db.commit()

    logger.info(f"Audit retention: cutoff={cutoff.isoformat()} matched={matched} deleted={deleted} dry_run={dry_run}")
    return {
        "status": "success",
        "cutoff": cutoff.isoformat(),
        "matched": matched,
        "deleted": deleted,
        "dry_run": dry_run,
    }
