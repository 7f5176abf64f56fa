from datetime import datetime
from typing import List, Set
from hrms.repositories.base import BaseRepository
from hrms.models.attendance import Attendance

class AttendanceRepository(BaseRepository[Attendance]):

    async def exists_for_day(self, user_id: str, day: datetime) -> bool:
        return await self.collection.find_one({"user_id": user_id, "date": day}) is not None

    async def users_with_record(self, day: datetime, user_ids: List[str]) -> Set[str]:
        cursor = self.collection.find({"date": day, "user_id": {"$in": user_ids}}, {"user_id": 1})
        docs = await cursor.to_list(length=None)
        return {doc["user_id"] for doc in docs}
