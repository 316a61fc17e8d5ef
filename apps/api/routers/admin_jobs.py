"""
Manual job triggers (admin only).

Run the batch engines synchronously for backfill and testing without
waiting for the beat schedule. Same service functions the Celery tasks
call, so the results are identical.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import Principal, require_admin
from models import PeriodType
from schemas import (
    JobSummaryResponse,
    LifecycleRunRequest,
    RecomputeScoresRequest,
    RecomputeStandingsRequest,
    SeasonResponse,
)
from services.anomaly_detection import run_anomaly_sweep
from services.periods import utcnow
from services.score_runs import run_daily_scoring, run_monthly_standings, run_weekly_standings
from services.season_lifecycle import cancel_season, run_season_lifecycle

router = APIRouter(prefix="/v1/admin", tags=["Admin Jobs"])


@router.post("/jobs/recompute-scores", response_model=JobSummaryResponse)
def trigger_recompute_scores(
    payload: RecomputeScoresRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = run_daily_scoring(db, payload.date, ruleset_id=payload.ruleset_id)
    return {"job": "recompute_daily_scores", "result": result}


@router.post("/jobs/recompute-standings", response_model=JobSummaryResponse)
def trigger_recompute_standings(
    payload: RecomputeStandingsRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if payload.period_type == PeriodType.MONTH:
        result = run_monthly_standings(
            db, payload.reference_date, ruleset_id=payload.ruleset_id, season_id=payload.season_id
        )
        return {"job": "run_monthly_standings", "result": result}

    result = run_weekly_standings(
        db, payload.reference_date, ruleset_id=payload.ruleset_id, season_id=payload.season_id
    )
    return {"job": "run_weekly_standings", "result": result}


@router.post("/jobs/season-lifecycle", response_model=JobSummaryResponse)
def trigger_season_lifecycle(
    payload: LifecycleRunRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = run_season_lifecycle(db, payload.as_of or utcnow().date())
    return {"job": "run_season_lifecycle", "result": result}


@router.post("/jobs/anomaly-sweep", response_model=JobSummaryResponse)
def trigger_anomaly_sweep(
    payload: LifecycleRunRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = run_anomaly_sweep(db, payload.as_of or utcnow().date())
    return {"job": "run_anomaly_sweep", "result": result}


@router.post("/seasons/{season_id}/cancel", response_model=SeasonResponse)
def trigger_cancel_season(
    season_id: UUID,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return cancel_season(db, season_id)
