from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from childwatch.core.logger import get_logger
from childwatch.schemas.activity import ActivityKind, ActivitySubmission, DurationUpdate
from childwatch.schemas.moderation import ModerationPreview, ModerationRequest, PolicyContractError
from childwatch.services import monitoring
from childwatch.services import moderation_engine
from childwatch.services.notification_composer import compose

router = APIRouter()
log = get_logger(__name__)


@router.post("/activity", status_code=201)
async def submit_activity(submission: ActivitySubmission):
    """Moderate a reported activity, store it, and alert the parent if needed."""
    service = monitoring.get_monitoring_service()
    try:
        activity = await service.submit_activity(submission.parent_id, submission.to_observation())
    except monitoring.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (PolicyContractError, ValidationError) as e:
        log.error("Stored policy for parent %s is invalid: %s", submission.parent_id, e)
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "activity": {
            "id": activity["id"],
            "flagged": activity["flagged"],
            "ai_analysis": activity["ai_analysis"],
            "decision": activity["decision"],
            "notification_sent": activity["notification_sent"],
        }
    }


@router.get("/activities")
def get_activities(
    parent_id: str = Query(...),
    child_name: Optional[str] = None,
    activity_kind: Optional[ActivityKind] = None,
    flagged: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=500),
    skip: int = Query(0, ge=0),
):
    """Activity history for a parent, newest first."""
    activities = monitoring.get_monitoring_service().list_activities(
        parent_id,
        child_name=child_name,
        activity_kind=activity_kind,
        flagged=flagged,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        skip=skip,
    )
    return {"count": len(activities), "activities": activities}


@router.put("/activity/{activity_id}/duration")
def update_duration(activity_id: str, update: DurationUpdate):
    try:
        activity = monitoring.get_monitoring_service().update_duration(activity_id, update.duration)
    except monitoring.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"activity": activity}


@router.post("/moderate", response_model=ModerationPreview)
async def moderate_preview(request: ModerationRequest):
    """Run moderation without storing anything; returns the would-be alert."""
    outcome = await moderation_engine.get_moderation_engine().moderate(request.observation, request.policy)
    notification = compose(request.observation, outcome.scores) if outcome.decision.should_notify else None
    return ModerationPreview(outcome=outcome, notification=notification)
