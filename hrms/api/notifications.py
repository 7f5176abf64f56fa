from typing import List

from fastapi import APIRouter, Depends, HTTPException

from hrms.api.auth import get_current_active_user, User
from hrms.database import db
from hrms.models.notification import Notification, TargetAudience

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

@router.get("", response_model=List[Notification])
async def list_notifications(limit: int = 50, current_user: User = Depends(get_current_active_user)):
    return await db.notifications.list_for_user(current_user.username, current_user.department_id, limit)

@router.get("/unread-count")
async def unread_count(current_user: User = Depends(get_current_active_user)):
    count = await db.notifications.count_unread(current_user.username, current_user.department_id)
    return {"unread_count": count}

@router.put("/read-all")
async def mark_all_read(current_user: User = Depends(get_current_active_user)):
    updated = await db.notifications.mark_all_read(current_user.username, current_user.department_id)
    return {"updated": updated}

@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, current_user: User = Depends(get_current_active_user)):
    notification = await db.notifications.get(notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    visible = (
        notification.target_audience == TargetAudience.ALL
        or (notification.target_audience == TargetAudience.INDIVIDUAL and notification.user_id == current_user.username)
        or (notification.target_audience == TargetAudience.SPECIFIC_USERS and current_user.username in notification.target_user_ids)
        or (notification.target_audience == TargetAudience.DEPARTMENT and notification.department_id == current_user.department_id)
    )
    if not visible:
        raise HTTPException(status_code=404, detail="Notification not found")

    await db.notifications.mark_read(notification, current_user.username)
    return {"message": "Notification marked as read"}
