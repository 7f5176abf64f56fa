from enum import Enum
from typing import List, Optional
from pydantic import Field, field_validator, model_validator
from hrms.models.base import MongoModel, EmbeddedModel, utcnow
from hrms.models.request import RequestType, StepRole
from datetime import datetime

class ApproverType(str, Enum):
    DIRECT_MANAGER = "DIRECT_MANAGER"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    SPECIFIC_DEPARTMENT_HEAD = "SPECIFIC_DEPARTMENT_HEAD"
    SPECIFIC_USER = "SPECIFIC_USER"

class WorkflowStep(EmbeddedModel):
    """Template step; resolved to a concrete approver when a request is sent."""
    level: int = Field(..., ge=1)
    approver_type: ApproverType = ApproverType.SPECIFIC_USER
    department_id: Optional[str] = Field(None, description="Used by SPECIFIC_DEPARTMENT_HEAD")
    approver_id: Optional[str] = Field(None, description="Used by SPECIFIC_USER")
    display_name: str
    role: StepRole = StepRole.APPROVER
    is_required: bool = True

    @model_validator(mode='after')
    def validate_target(self):
        if self.approver_type == ApproverType.SPECIFIC_DEPARTMENT_HEAD and not self.department_id:
            raise ValueError('department_id is required for SPECIFIC_DEPARTMENT_HEAD')
        if self.approver_type == ApproverType.SPECIFIC_USER and not self.approver_id:
            raise ValueError('approver_id is required for SPECIFIC_USER')
        return self

class Workflow(MongoModel):
    """
    Approval template for one request type.
    """
    name: str
    description: Optional[str] = None
    request_type: RequestType
    approval_flow: List[WorkflowStep] = []
    is_active: bool = True

    # Empty means the workflow applies to every department.
    applicable_departments: List[str] = []

    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('approval_flow')
    @classmethod
    def validate_levels(cls, v):
        if not v:
            raise ValueError('approval_flow must contain at least one step')
        return sorted(v, key=lambda s: s.level)
