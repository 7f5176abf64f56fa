import logging
from typing import List, Optional
from hrms.repositories.base import BaseRepository, _object_id
from hrms.models.base import utcnow
from hrms.models.request import Request, RequestStatus, OPEN_STATUSES, StepStatus, StepRole
from hrms.workflow.errors import StaleRequest

logger = logging.getLogger(__name__)

class RequestRepository(BaseRepository[Request]):

    async def get_by_request_id(self, request_id: str) -> Optional[Request]:
        """Look up by the human readable id, falling back to the internal key."""
        request = await self.get_by_field("request_id", request_id)
        if request is None and len(request_id) == 24:
            request = await self.get(request_id)
        return request

    async def save_versioned(self, request: Request) -> Request:
        """
        Compare-and-swap write of the whole request document.
        The write only lands if the stored version still equals the one the
        caller loaded; otherwise another writer got there first.
        """
        expected = request.version
        request.version = expected + 1
        request.updated_at = utcnow()
        data = request.to_mongo()
        data.pop("_id", None)

        result = await self.collection.replace_one(
            {"_id": _object_id(request.id), "version": expected},
            data
        )
        if result.matched_count == 0:
            request.version = expected
            logger.warning(f"Stale write rejected for request {request.request_id} (version {expected})")
            raise StaleRequest(request.request_id)
        return request

    async def find_open_with_sla(self) -> List[Request]:
        return await self.find({
            "status": {"$in": [s.value for s in OPEN_STATUSES]},
            "sla.deadline": {"$exists": True, "$ne": None},
        })

    async def find_by_submitter(self, user_id: str, status: Optional[RequestStatus] = None) -> List[Request]:
        query = {"submitted_by": user_id, "sender_status.is_deleted": {"$ne": True}}
        if status:
            query["status"] = status.value
        return await self.find(query)

    async def find_awaiting(self, approver_id: str) -> List[Request]:
        """Open requests where the user still holds a pending Approver step."""
        return await self.find({
            "status": {"$in": [s.value for s in OPEN_STATUSES]},
            "approval_flow": {"$elemMatch": {
                "approver_id": approver_id,
                "role": StepRole.APPROVER.value,
                "status": StepStatus.PENDING.value,
            }},
        })
