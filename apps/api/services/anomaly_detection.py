"""
Anomaly detection for daily activity values.

Two rules:
- absolute ceiling: value > max_activity_per_day
- day-over-day spike: value - previous day's value > max_activity_spike

Flags are sticky. A re-sync can add a flag but never clears one, and the
scoring engine only reads them (flagged days earn no activity points).

The nightly sweep re-checks unflagged summaries for the last
ANOMALY_SWEEP_LOOKBACK_DAYS days (0 disables it). It only ever sets flags.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.config import settings
from models import HealthDailySummary
from services.rulesets import RulesetParams, thresholds_for_sync

logger = logging.getLogger(__name__)

REASON_MAX_DAILY = "Exceeds maximum daily activity"
REASON_SPIKE = "Unusual spike from previous day"
REASON_SEPARATOR = "; "


@dataclass(frozen=True)
class AnomalyVerdict:
    flagged: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"flagged": self.flagged, "reason": self.reason}


def evaluate(
    activity_value: int,
    previous_value: Optional[int],
    max_per_day: int,
    max_spike: int,
) -> AnomalyVerdict:
    reasons: List[str] = []
    if activity_value > max_per_day:
        reasons.append(REASON_MAX_DAILY)
    if previous_value is not None and activity_value - previous_value > max_spike:
        reasons.append(REASON_SPIKE)

    if not reasons:
        return AnomalyVerdict(flagged=False)
    return AnomalyVerdict(flagged=True, reason=REASON_SEPARATOR.join(reasons))


def previous_day_value(db: Session, member_id: UUID, day: date) -> Optional[int]:
    row = (
        db.query(HealthDailySummary.active_calories)
        .filter(
            HealthDailySummary.member_id == member_id,
            HealthDailySummary.date == day - timedelta(days=1),
        )
        .first()
    )
    return row[0] if row else None


def evaluate_member_day(
    db: Session,
    member_id: UUID,
    day: date,
    activity_value: int,
    params: Optional[RulesetParams] = None,
) -> AnomalyVerdict:
    params = params or thresholds_for_sync(db)
    return evaluate(
        activity_value,
        previous_day_value(db, member_id, day),
        params.max_activity_per_day,
        params.max_activity_spike,
    )


def merge_sticky(
    existing_flagged: bool,
    existing_reason: Optional[str],
    verdict: AnomalyVerdict,
) -> Tuple[bool, Optional[str]]:
    """OR the new verdict into stored flag state; reasons accumulate without duplicates."""
    if not existing_flagged:
        return verdict.flagged, verdict.reason
    if not verdict.flagged:
        return True, existing_reason

    reasons = [r for r in (existing_reason or "").split(REASON_SEPARATOR) if r]
    for reason in (verdict.reason or "").split(REASON_SEPARATOR):
        if reason and reason not in reasons:
            reasons.append(reason)
    return True, REASON_SEPARATOR.join(reasons) or None


def run_anomaly_sweep(
    db: Session,
    reference_date: date,
    lookback_days: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Re-check unflagged summaries on the days before reference_date.

    Each flagged row is committed on its own; a failing row is logged and
    counted without stopping the sweep.
    """
    lookback = settings.ANOMALY_SWEEP_LOOKBACK_DAYS if lookback_days is None else lookback_days
    if lookback <= 0:
        return {"status": "disabled", "checked": 0, "flagged": 0, "failed": 0}

    params = thresholds_for_sync(db)
    start = reference_date - timedelta(days=lookback)
    end = reference_date - timedelta(days=1)

    rows = (
        db.query(HealthDailySummary)
        .filter(
            HealthDailySummary.date >= start,
            HealthDailySummary.date <= end,
            HealthDailySummary.anomaly_flagged.is_(False),
        )
        .all()
    )
    logger.info(f"Anomaly sweep: {len(rows)} unflagged summaries between {start} and {end}")

    checked = 0
    flagged = 0
    failed = 0
    for row in rows:
        try:
            verdict = evaluate_member_day(db, row.member_id, row.date, row.active_calories, params)
            checked += 1
            if verdict.flagged:
                row.anomaly_flagged = True
                row.anomaly_reason = verdict.reason
                db.commit()
                flagged += 1
        except Exception as e:
            db.rollback()
            failed += 1
            logger.error(
                f"Anomaly sweep failed for member {row.member_id} on {row.date}: {e}",
                exc_info=True,
                extra={"extra_fields": {"member_id": str(row.member_id), "date": str(row.date)}},
            )

    logger.info(f"Anomaly sweep complete: checked={checked} flagged={flagged} failed={failed}")
    return {
        "status": "success",
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "checked": checked,
        "flagged": flagged,
        "failed": failed,
    }
