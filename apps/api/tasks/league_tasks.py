"""
Scheduled league tasks.

Thin Celery wrappers: each opens its own session, delegates to the
service-level run function and returns its summary dict. Per-entity
failures are handled inside the run functions; here we only turn a
whole-run failure into an error summary.
"""
from datetime import date, timedelta
from typing import Callable, Dict, Optional
from uuid import UUID
import logging

from celery import Task

from core.database import get_db_sync
from core.exceptions import RulesetMissingError
from services.anomaly_detection import run_anomaly_sweep
from services.periods import utcnow
from services.retention import purge_audit_events
from services.score_runs import run_daily_scoring, run_monthly_standings, run_weekly_standings
from services.season_lifecycle import run_season_lifecycle
from tasks import celery_app

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str], default: date) -> date:
    return date.fromisoformat(value) if value else default


def _run(job: str, fn: Callable[..., Dict], *args, **kwargs) -> Dict:
    db = get_db_sync()
    try:
        return fn(db, *args, **kwargs)
    except RulesetMissingError as e:
        db.rollback()
        logger.error(
            f"{job} aborted: {e.detail}",
            extra={"extra_fields": {"job": job, "error_code": e.error_code}},
        )
        return {"status": "aborted", "error_code": e.error_code, "message": e.detail}
    except Exception as e:
        db.rollback()
        logger.error(f"{job} failed: {e}", exc_info=True, extra={"extra_fields": {"job": job}})
        return {"status": "error", "message": str(e)}
    finally:
        db.close()


@celery_app.task(name="tasks.recompute_daily_scores", bind=True)
def recompute_daily_scores_task(self: Task, target_date: Optional[str] = None, ruleset_id: Optional[str] = None) -> Dict:
    """Score all active members for target_date (default: yesterday UTC)."""
    day = _parse_date(target_date, utcnow().date() - timedelta(days=1))
    return _run("recompute_daily_scores", run_daily_scoring, day, ruleset_id=UUID(ruleset_id) if ruleset_id else None)


@celery_app.task(name="tasks.run_weekly_standings", bind=True)
def run_weekly_standings_task(self: Task, reference_date: Optional[str] = None) -> Dict:
    """Close the previous ISO week for every active season."""
    day = _parse_date(reference_date, utcnow().date())
    return _run("run_weekly_standings", run_weekly_standings, day)


@celery_app.task(name="tasks.run_monthly_standings", bind=True)
def run_monthly_standings_task(self: Task, reference_date: Optional[str] = None) -> Dict:
    """Snapshot the previous month for every active season."""
    day = _parse_date(reference_date, utcnow().date())
    return _run("run_monthly_standings", run_monthly_standings, day)


@celery_app.task(name="tasks.run_anomaly_sweep", bind=True)
def run_anomaly_sweep_task(self: Task, reference_date: Optional[str] = None) -> Dict:
    day = _parse_date(reference_date, utcnow().date())
    return _run("run_anomaly_sweep", run_anomaly_sweep, day)


@celery_app.task(name="tasks.run_season_lifecycle", bind=True)
def run_season_lifecycle_task(self: Task, today: Optional[str] = None) -> Dict:
    day = _parse_date(today, utcnow().date())
    return _run("run_season_lifecycle", run_season_lifecycle, day)


@celery_app.task(name="tasks.run_retention_cleanup", bind=True)
def run_retention_cleanup_task(self: Task, days: Optional[int] = None) -> Dict:
    return _run("run_retention_cleanup", purge_audit_events, older_than_days=days)
