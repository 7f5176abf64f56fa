from typing import Optional
from hrms.repositories.base import BaseRepository
from hrms.models.workflow import Workflow
from hrms.models.request import RequestType

class WorkflowRepository(BaseRepository[Workflow]):

    async def get_active_workflow(self, request_type: RequestType, department_id: Optional[str] = None) -> Optional[Workflow]:
        """
        Active template for a request type. A workflow scoped to the
        submitter's department wins over the general one.
        """
        query = {"request_type": request_type.value, "is_active": True}

        if department_id:
            doc = await self.collection.find_one({**query, "applicable_departments": department_id})
            if doc:
                return self.model_cls.from_mongo(doc)

        doc = await self.collection.find_one({
            **query,
            "$or": [
                {"applicable_departments": {"$size": 0}},
                {"applicable_departments": {"$exists": False}},
            ]
        })
        return self.model_cls.from_mongo(doc) if doc else None
