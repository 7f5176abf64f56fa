from typing import Any, Dict, List, Optional
from hrms.repositories.base import BaseRepository, _object_id
from hrms.models.notification import Notification, TargetAudience

class NotificationRepository(BaseRepository[Notification]):

    @staticmethod
    def visible_to(user_id: str, department_id: Optional[str] = None) -> Dict[str, Any]:
        """Filter for every notification a user can see."""
        clauses = [
            {"target_audience": TargetAudience.INDIVIDUAL.value, "user_id": user_id},
            {"target_audience": TargetAudience.SPECIFIC_USERS.value, "target_user_ids": user_id},
            {"target_audience": TargetAudience.ALL.value},
        ]
        if department_id:
            clauses.append({"target_audience": TargetAudience.DEPARTMENT.value, "department_id": department_id})
        return {"$or": clauses}

    async def list_for_user(self, user_id: str, department_id: Optional[str] = None, limit: int = 50) -> List[Notification]:
        cursor = (
            self.collection.find(self.visible_to(user_id, department_id))
            .sort("created_at", -1)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [self.model_cls.from_mongo(doc) for doc in docs]

    async def count_unread(self, user_id: str, department_id: Optional[str] = None) -> int:
        visible = self.visible_to(user_id, department_id)
        return await self.collection.count_documents({
            "$and": [
                visible,
                {"$or": [
                    {"target_audience": TargetAudience.INDIVIDUAL.value, "is_read": False},
                    {"target_audience": {"$ne": TargetAudience.INDIVIDUAL.value}, "read_by": {"$ne": user_id}},
                ]},
            ]
        })

    async def mark_read(self, notification: Notification, user_id: str) -> None:
        if notification.target_audience == TargetAudience.INDIVIDUAL:
            update = {"$set": {"is_read": True}}
        else:
            update = {"$addToSet": {"read_by": user_id}}
        await self.collection.update_one({"_id": _object_id(notification.id)}, update)

    async def mark_all_read(self, user_id: str, department_id: Optional[str] = None) -> int:
        individual = await self.collection.update_many(
            {"target_audience": TargetAudience.INDIVIDUAL.value, "user_id": user_id, "is_read": False},
            {"$set": {"is_read": True}}
        )
        broadcast_filter = self.visible_to(user_id, department_id)
        broadcast = await self.collection.update_many(
            {"$and": [
                broadcast_filter,
                {"target_audience": {"$ne": TargetAudience.INDIVIDUAL.value}},
                {"read_by": {"$ne": user_id}},
            ]},
            {"$addToSet": {"read_by": user_id}}
        )
        return individual.modified_count + broadcast.modified_count
