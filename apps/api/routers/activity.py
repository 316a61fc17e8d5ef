"""
Activity Sync API Router

Daily activity totals from HealthKit / Health Connect. Upserted per
(member, date); the anomaly verdict comes back with the stored summary.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import get_current_member
from models import Member
from schemas import ActivitySyncRequest, ActivitySyncResponse, HealthDailySummaryResponse
from services.activity_sync import sync_daily_activity

router = APIRouter(prefix="/v1/activity", tags=["Activity"])


@router.post("/sync", response_model=ActivitySyncResponse)
def sync_activity(
    payload: ActivitySyncRequest,
    member: Member = Depends(get_current_member),
    db: Session = Depends(get_db),
):
    result = sync_daily_activity(
        db,
        member,
        day=payload.date,
        active_calories=payload.active_calories,
        steps=payload.steps,
        workout_minutes=payload.workout_minutes,
        source=payload.source,
        device_info=payload.device_info,
    )
    return ActivitySyncResponse(
        stored_summary=HealthDailySummaryResponse.model_validate(result.summary),
        anomaly_detected=result.anomaly_detected,
    )
