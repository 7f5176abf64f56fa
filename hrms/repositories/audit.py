import uuid
from typing import List, Optional
from hrms.repositories.base import BaseRepository
from hrms.models.audit import AuditEvent, Action, Actor, ActionType

class AuditLogger(BaseRepository[AuditEvent]):

    async def log_action(self,
                         actor: Actor,
                         action_type: ActionType,
                         details: str,
                         request_id: Optional[str] = None,
                         metadata: Optional[dict] = None):
        """Helper to quickly log an action."""
        event = AuditEvent(
            event_id=f"EVT-{uuid.uuid4()}",
            request_id=request_id,
            actor=actor,
            action=Action(
                action_type=action_type,
                details=details,
                metadata=metadata or {}
            )
        )
        await self.create(event)
        return event

    async def get_for_request(self, request_id: str) -> List[AuditEvent]:
        """Retrieve all audit events for a specific request."""
        return await self.get_all_by_field("request_id", request_id)
