"""
Daily activity ingestion from the mobile client.

One summary row per (member, date), upserted on every sync. The anomaly
verdict is computed on this path and OR-ed into the stored flag.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from core.database import upsert
from core.exceptions import ConsentRequiredError
from models import ActivitySource, HealthDailySummary, Member
from services.anomaly_detection import AnomalyVerdict, evaluate_member_day, merge_sticky
from services.periods import as_utc, utcnow

logger = logging.getLogger(__name__)

_SYNC_UPDATE_COLUMNS = [
    "active_calories",
    "steps",
    "workout_minutes",
    "source",
    "device_info",
    "anomaly_flagged",
    "anomaly_reason",
    "last_sync_at",
]


@dataclass
class SyncResult:
    summary: HealthDailySummary
    verdict: AnomalyVerdict

    @property
    def anomaly_detected(self) -> bool:
        return self.verdict.flagged


def set_activity_consent(db: Session, member: Member, granted: bool, now: Optional[datetime] = None) -> Member:
    member.activity_consent = bool(granted)
    member.activity_consent_at = as_utc(now or utcnow()) if granted else None
    db.flush()
    logger.info(f"Member {member.id} activity consent set to {granted}")
    return member


def sync_daily_activity(
    db: Session,
    member: Member,
    day: date,
    active_calories: int,
    steps: Optional[int] = None,
    workout_minutes: Optional[int] = None,
    source: ActivitySource = ActivitySource.MANUAL,
    device_info: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    if not member.activity_consent:
        raise ConsentRequiredError()

    now = as_utc(now or utcnow())
    verdict = evaluate_member_day(db, member.id, day, active_calories)

    existing = (
        db.query(HealthDailySummary)
        .filter(HealthDailySummary.member_id == member.id, HealthDailySummary.date == day)
        .first()
    )
    if existing is not None:
        flagged, reason = merge_sticky(existing.anomaly_flagged, existing.anomaly_reason, verdict)
    else:
        flagged, reason = verdict.flagged, verdict.reason

    upsert(
        db,
        HealthDailySummary,
        {
            "member_id": member.id,
            "date": day,
            "active_calories": active_calories,
            "steps": steps,
            "workout_minutes": workout_minutes,
            "source": ActivitySource(source).value,
            "device_info": device_info,
            "anomaly_flagged": flagged,
            "anomaly_reason": reason,
            "last_sync_at": now,
        },
        conflict_columns=["member_id", "date"],
        update_columns=_SYNC_UPDATE_COLUMNS,
    )
    db.flush()

    summary = (
        db.query(HealthDailySummary)
        .filter(HealthDailySummary.member_id == member.id, HealthDailySummary.date == day)
        .populate_existing()
        .one()
    )

    if verdict.flagged:
        logger.warning(
            f"Anomaly detected for member {member.id} on {day}: {verdict.reason}",
            extra={"extra_fields": {"member_id": str(member.id), "date": str(day), "value": active_calories}},
        )

    return SyncResult(summary=summary, verdict=verdict)
