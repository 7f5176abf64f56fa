from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import Field, field_validator
from hrms.models.base import MongoModel, EmbeddedModel, utcnow

class RequestType(str, Enum):
    LEAVE = "Leave"
    OVERTIME = "Overtime"
    REMOTE_WORK = "RemoteWork"
    RESIGNATION = "Resignation"
    BUSINESS_TRIP = "BusinessTrip"
    EQUIPMENT = "Equipment"
    IT_SUPPORT = "ITSupport"
    HR_DOCUMENT = "HRDocument"
    EXPENSE = "Expense"
    OTHER = "Other"

class RequestStatus(str, Enum):
    PENDING = "Pending"
    NEEDS_REVIEW = "NeedsReview"
    MANAGER_APPROVED = "Manager_Approved"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"

# No approver action is accepted once a request reaches one of these.
TERMINAL_STATUSES = (
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
    RequestStatus.COMPLETED,
)
OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)

class Priority(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"

class StepRole(str, Enum):
    APPROVER = "Approver"
    REVIEWER = "Reviewer"
    NOTIFIED = "Notified"

class StepStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    NEEDS_REVIEW = "NeedsReview"

class Attachment(EmbeddedModel):
    name: str
    url: str
    size: int = 0
    type: Optional[str] = None

class ApprovalStep(EmbeddedModel):
    """One approver slot in a request's chain. Steps sharing a level are co-approvers."""
    level: int = Field(..., ge=1)
    approver_id: str
    approver_name: str
    approver_email: Optional[str] = None
    role: StepRole = StepRole.APPROVER
    status: StepStatus = StepStatus.PENDING
    comment: Optional[str] = None
    action_at: Optional[datetime] = None
    is_read: bool = False

class SenderStatus(EmbeddedModel):
    is_draft: bool = False
    is_starred: bool = False
    is_deleted: bool = False
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

class SLAReminder(EmbeddedModel):
    type: str # 24h, 36h, overdue
    sent_at: datetime = Field(default_factory=utcnow)
    recipient_ids: List[str] = []

class SLAInfo(EmbeddedModel):
    deadline: datetime
    is_overdue: bool = False
    overdue_hours: int = 0
    reminders_sent: List[SLAReminder] = []
    escalated_to: Optional[str] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None

    def has_reminder(self, reminder_type: str) -> bool:
        return any(r.type == reminder_type for r in self.reminders_sent)

class HistoryEntry(EmbeddedModel):
    """Administrative override record, kept apart from the approval chain."""
    action: str # FORCE_APPROVE, FORCE_REJECT, OVERRIDE
    performed_by: str
    performed_by_name: Optional[str] = None
    from_status: RequestStatus
    to_status: RequestStatus
    comment: str
    timestamp: datetime = Field(default_factory=utcnow)

class Comment(EmbeddedModel):
    user_id: str
    user_name: str
    content: str
    created_at: datetime = Field(default_factory=utcnow)

class Request(MongoModel):
    """
    Employee request moving through a multi-level approval chain.
    """
    request_id: str = Field(..., description="Human readable ID (REQ-YYYYMMDD-XXXXXX)")
    type: RequestType
    subject: Optional[str] = None
    reason: str
    start_date: datetime
    end_date: Optional[datetime] = None
    hour: Optional[float] = Field(None, ge=0)
    attachments: List[Attachment] = []
    priority: Priority = Priority.NORMAL

    submitted_by: str
    submitted_by_name: str
    submitted_by_email: Optional[str] = None
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    cc: List[str] = []

    status: RequestStatus = RequestStatus.PENDING
    approval_flow: List[ApprovalStep] = []
    sender_status: SenderStatus = Field(default_factory=SenderStatus)
    sla: Optional[SLAInfo] = None
    history: List[HistoryEntry] = []
    comments: List[Comment] = []

    sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Bumped on every write; used for compare-and-swap updates.
    version: int = 0

    @field_validator('end_date')
    @classmethod
    def validate_end_date(cls, v, info):
        start = info.data.get('start_date')
        if v is not None and start is not None and v < start:
            raise ValueError('end_date must be on or after start_date')
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def approver_steps(self) -> List[ApprovalStep]:
        return [s for s in self.approval_flow if s.role == StepRole.APPROVER]

    class Config:
        json_schema_extra = {
            "example": {
                "request_id": "REQ-20240301-4F2A9C",
                "type": "Leave",
                "subject": "Family trip",
                "reason": "Annual leave",
                "start_date": "2024-03-10T00:00:00",
                "end_date": "2024-03-12T00:00:00",
                "status": "Pending",
                "approval_flow": [
                    {"level": 1, "approver_id": "u_mgr", "approver_name": "Lan Nguyen", "status": "Pending"}
                ]
            }
        }

class RequestCreate(EmbeddedModel):
    """Fields a submitter provides for a new request."""
    type: RequestType
    subject: Optional[str] = None
    reason: str = Field(..., min_length=1)
    start_date: datetime
    end_date: Optional[datetime] = None
    hour: Optional[float] = Field(None, ge=0)
    attachments: List[Attachment] = []
    priority: Priority = Priority.NORMAL
    cc: List[str] = []

    @field_validator('end_date')
    @classmethod
    def validate_end_date(cls, v, info):
        start = info.data.get('start_date')
        if v is not None and start is not None and v < start:
            raise ValueError('end_date must be on or after start_date')
        return v

class RequestEdit(EmbeddedModel):
    """Fields a submitter may change when resubmitting."""
    subject: Optional[str] = None
    reason: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    hour: Optional[float] = Field(None, ge=0)
    attachments: Optional[List[Attachment]] = None
