from hrms.models.base import MongoModel, EmbeddedModel, utcnow
from hrms.models.request import (
    Request, RequestType, RequestStatus, Priority, StepRole, StepStatus,
    ApprovalStep, Attachment, SenderStatus, SLAInfo, SLAReminder, HistoryEntry, Comment,
    RequestCreate, RequestEdit,
    TERMINAL_STATUSES, OPEN_STATUSES,
)
from hrms.models.workflow import Workflow, WorkflowStep, ApproverType
from hrms.models.user import Employee, Department, Role, EmployeeStatus
from hrms.models.attendance import Attendance, AttendanceStatus
from hrms.models.notification import Notification, NotificationType, TargetAudience
from hrms.models.config import SystemConfig, AutoActions, SLASettings, WorkSchedule
from hrms.models.audit import AuditEvent, Action, Actor, ActionType
