from datetime import datetime
from typing import List, Optional
from pydantic import Field, field_validator
from hrms.config import settings
from hrms.models.base import MongoModel, EmbeddedModel, utcnow
import re

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

def _check_hhmm(v: str) -> str:
    if not _HHMM.match(v):
        raise ValueError('time must use HH:MM format')
    return v

class WorkSchedule(EmbeddedModel):
    work_start_time: str = "08:00"
    work_end_time: str = "17:00"
    standard_work_hours: int = Field(8, ge=1, le=12)
    grace_period_minutes: int = Field(15, ge=0, le=60)

    @field_validator('work_start_time', 'work_end_time')
    @classmethod
    def validate_times(cls, v):
        return _check_hhmm(v)

class AutoActions(EmbeddedModel):
    auto_mark_absent_time: str = "09:30"
    enable_auto_mark_absent: bool = True

    @field_validator('auto_mark_absent_time')
    @classmethod
    def validate_time(cls, v):
        return _check_hhmm(v)

class SLASettings(EmbeddedModel):
    deadline_hours: int = Field(default_factory=lambda: settings.SLA_DEADLINE_HOURS, ge=1)
    reminder_hours: List[int] = [24, 36]
    escalation_hours: int = Field(48, ge=0)

class SystemConfig(MongoModel):
    """
    Single system-wide configuration document.
    """
    config_type: str = "company"

    work_schedule: WorkSchedule = Field(default_factory=WorkSchedule)
    auto_actions: AutoActions = Field(default_factory=AutoActions)
    sla: SLASettings = Field(default_factory=SLASettings)

    last_updated_by: Optional[str] = None
    last_updated_by_name: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)

    # Incremented by every write so readers can detect stale caches.
    version: int = 0
