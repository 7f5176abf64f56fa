import logging
from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from hrms.database import db
from hrms.models.base import utcnow
from hrms.models.request import RequestStatus

logger = logging.getLogger(__name__)

class RequestMetrics:
    """
    Aggregate counters over the requests collection for the dashboard.
    """

    async def get_status_distribution(self, department_id: Optional[str] = None) -> Dict[str, int]:
        pipeline = []
        if department_id:
            pipeline.append({"$match": {"department_id": department_id}})
        pipeline.append({"$group": {"_id": "$status", "count": {"$sum": 1}}})

        results = await db.requests.collection.aggregate(pipeline).to_list(length=None)
        # Fill zeros
        stats = {status.value: 0 for status in RequestStatus}
        stats.update({item["_id"]: item["count"] for item in results if item["_id"] in stats})
        return stats

    async def get_request_stats(self, department_id: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        week_ago = now - timedelta(days=7)

        distribution = await self.get_status_distribution(department_id)

        type_pipeline = []
        match: Dict[str, Any] = {"created_at": {"$gte": week_ago}}
        if department_id:
            match["department_id"] = department_id
        type_pipeline.append({"$match": match})
        type_pipeline.append({"$group": {"_id": "$type", "count": {"$sum": 1}}})
        by_type = await db.requests.collection.aggregate(type_pipeline).to_list(length=None)

        open_count = distribution[RequestStatus.PENDING.value] + distribution[RequestStatus.MANAGER_APPROVED.value]
        decided = distribution[RequestStatus.APPROVED.value] + distribution[RequestStatus.REJECTED.value]
        approval_rate = 0.0
        if decided > 0:
            approval_rate = distribution[RequestStatus.APPROVED.value] / decided * 100

        return {
            "status_distribution": distribution,
            "total_requests": sum(distribution.values()),
            "open_requests": open_count,
            "needs_review": distribution[RequestStatus.NEEDS_REVIEW.value],
            "approval_rate": round(approval_rate, 2),
            "last_7_days_by_type": {item["_id"]: item["count"] for item in by_type},
        }

request_metrics = RequestMetrics()
