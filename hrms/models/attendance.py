from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import Field
from hrms.models.base import MongoModel, utcnow

class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    LATE = "Late"
    ABSENT = "Absent"
    ON_LEAVE = "On Leave"
    EARLY_LEAVE = "Early Leave"
    LATE_AND_EARLY_LEAVE = "Late & Early Leave"

class Attendance(MongoModel):
    user_id: str
    date: datetime = Field(..., description="Midnight of the local working day")
    status: AttendanceStatus = AttendanceStatus.PRESENT
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    remarks: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
