from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any
from pydantic import Field
from hrms.models.base import MongoModel, utcnow

class NotificationType(str, Enum):
    NEW_REQUEST = "NewRequest"
    REQUEST_APPROVED = "RequestApproved"
    REQUEST_REJECTED = "RequestRejected"
    REQUEST_NEEDS_REVIEW = "RequestNeedsReview"
    REQUEST_RESUBMITTED = "RequestResubmitted"
    REQUEST_CANCELLED = "RequestCancelled"
    REQUEST_OVERRIDE = "RequestOverride"
    REQUEST_UPDATE = "RequestUpdate"
    SLA_REMINDER = "SLAReminder"
    SLA_ESCALATION = "SLAEscalation"
    ATTENDANCE_UPDATE = "AttendanceUpdate"
    GENERAL = "General"

class TargetAudience(str, Enum):
    INDIVIDUAL = "Individual"
    ALL = "All"
    DEPARTMENT = "Department"
    SPECIFIC_USERS = "SpecificUsers"

class Notification(MongoModel):
    """
    In-app notification. Individual notifications track `is_read`;
    broadcast ones (All / Department) track readers in `read_by`.
    """
    message: str
    type: NotificationType
    related_id: Optional[str] = None

    sender_id: Optional[str] = None
    sender_name: Optional[str] = None

    target_audience: TargetAudience
    user_id: Optional[str] = None
    target_user_ids: List[str] = []
    department_id: Optional[str] = None
    department_name: Optional[str] = None

    is_read: bool = False
    read_by: List[str] = []

    metadata: Dict[str, Any] = {}
    created_at: datetime = Field(default_factory=utcnow)
