from typing import Optional
from pymongo import ReturnDocument
from hrms.repositories.base import BaseRepository
from hrms.models.config import SystemConfig

class ConfigRepository(BaseRepository[SystemConfig]):

    async def get_system_config(self) -> Optional[SystemConfig]:
        doc = await self.collection.find_one({"config_type": "company"})
        return self.model_cls.from_mongo(doc) if doc else None

    async def save_system_config(self, config: SystemConfig) -> SystemConfig:
        """Upsert the single config document, bumping its version."""
        data = config.to_mongo()
        data.pop("_id", None)
        data.pop("version", None)
        doc = await self.collection.find_one_and_update(
            {"config_type": "company"},
            {"$set": data, "$inc": {"version": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return self.model_cls.from_mongo(doc)
