import logging
from typing import Any, Dict, List, Optional

from hrms.database import db
from hrms.models.notification import Notification, NotificationType, TargetAudience

logger = logging.getLogger(__name__)

class NotificationDispatcher:
    """
    Write path for in-app notifications. Individual targets get one document
    each; department and company-wide targets share one document whose
    readers are tracked in `read_by`.
    """

    def _build(self, message: str, type: NotificationType, audience: TargetAudience,
               sender_id: Optional[str], sender_name: Optional[str],
               related_id: Optional[str], metadata: Optional[Dict[str, Any]], **target) -> Notification:
        return Notification(
            message=message,
            type=type,
            target_audience=audience,
            sender_id=sender_id,
            sender_name=sender_name or "System",
            related_id=related_id,
            metadata=metadata or {},
            **target
        )

    async def notify_user(self, user_id: str, message: str, type: NotificationType,
                          sender_id: Optional[str] = None, sender_name: Optional[str] = None,
                          related_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Notification:
        notification = self._build(
            message, type, TargetAudience.INDIVIDUAL, sender_id, sender_name, related_id, metadata,
            user_id=user_id, is_read=False
        )
        await db.notifications.create(notification)
        return notification

    async def notify_users(self, user_ids: List[str], message: str, type: NotificationType,
                           sender_id: Optional[str] = None, sender_name: Optional[str] = None,
                           related_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> List[Notification]:
        unique_ids = list(dict.fromkeys(u for u in user_ids if u))
        if not unique_ids:
            return []
        notifications = [
            self._build(
                message, type, TargetAudience.INDIVIDUAL, sender_id, sender_name, related_id, metadata,
                user_id=user_id, is_read=False
            )
            for user_id in unique_ids
        ]
        await db.notifications.create_many(notifications)
        logger.debug(f"Created {len(notifications)} '{type.value}' notifications")
        return notifications

    async def notify_department(self, department_id: str, message: str, type: NotificationType,
                                department_name: Optional[str] = None,
                                sender_id: Optional[str] = None, sender_name: Optional[str] = None,
                                related_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Notification:
        notification = self._build(
            message, type, TargetAudience.DEPARTMENT, sender_id, sender_name, related_id, metadata,
            department_id=department_id, department_name=department_name, read_by=[]
        )
        await db.notifications.create(notification)
        return notification

    async def notify_all(self, message: str, type: NotificationType,
                         sender_id: Optional[str] = None, sender_name: Optional[str] = None,
                         related_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Notification:
        notification = self._build(
            message, type, TargetAudience.ALL, sender_id, sender_name, related_id, metadata,
            read_by=[]
        )
        await db.notifications.create(notification)
        return notification

notification_dispatcher = NotificationDispatcher()
