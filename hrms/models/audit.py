from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import Field
from hrms.models.base import MongoModel, EmbeddedModel, utcnow

class ActionType(str, Enum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    RESUBMITTED = "RESUBMITTED"
    CANCELLED = "CANCELLED"
    FORCE_APPROVED = "FORCE_APPROVED"
    FORCE_REJECTED = "FORCE_REJECTED"
    OVERRIDDEN = "OVERRIDDEN"
    ESCALATED = "ESCALATED"
    CONFIG_UPDATED = "CONFIG_UPDATED"

class Actor(EmbeddedModel):
    id: str
    name: str
    type: str = "SYSTEM" # SYSTEM, USER

class Action(EmbeddedModel):
    """Record of a specific action taken."""
    action_type: ActionType
    details: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = {}

class AuditEvent(MongoModel):
    """
    Complete audit log entry.
    """
    event_id: str = Field(..., description="Unique event ID")
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    actor: Actor
    action: Action
