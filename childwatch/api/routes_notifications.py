from fastapi import APIRouter, HTTPException, Query

from childwatch.services import monitoring

router = APIRouter()


@router.get("")
def get_notifications(
    parent_id: str = Query(...),
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
):
    notifications = monitoring.get_monitoring_service().list_notifications(
        parent_id, unread_only=unread_only, limit=limit
    )
    return {"count": len(notifications), "notifications": notifications}


@router.put("/{notification_id}/read")
def mark_as_read(notification_id: str, parent_id: str = Query(...)):
    try:
        notification = monitoring.get_monitoring_service().mark_notification_read(parent_id, notification_id)
    except monitoring.NotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"notification": notification}
