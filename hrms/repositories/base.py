from typing import Generic, TypeVar, Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorCollection
from bson import ObjectId
from hrms.models.base import MongoModel

T = TypeVar("T", bound=MongoModel)

def _object_id(id: str) -> Any:
    return ObjectId(id) if ObjectId.is_valid(id) else id

class BaseRepository(Generic[T]):
    def __init__(self, collection: AsyncIOMotorCollection, model_cls: type[T]):
        self.collection = collection
        self.model_cls = model_cls

    async def get(self, id: str) -> Optional[T]:
        """Get a document by ID."""
        doc = await self.collection.find_one({"_id": _object_id(id)})
        return self.model_cls.from_mongo(doc) if doc else None

    async def get_by_field(self, field: str, value: Any) -> Optional[T]:
        """Get a document by a specific field."""
        doc = await self.collection.find_one({field: value})
        return self.model_cls.from_mongo(doc) if doc else None

    async def find(self, filter: Dict[str, Any], limit: int = 0) -> List[T]:
        """All documents matching a filter (limit 0 means unbounded)."""
        cursor = self.collection.find(filter)
        docs = await cursor.to_list(length=limit or None)
        return [self.model_cls.from_mongo(doc) for doc in docs]

    async def get_all_by_field(self, field: str, value: Any) -> List[T]:
        return await self.find({field: value})

    async def list(self, filter: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 100) -> List[T]:
        """List documents with optional filter and pagination."""
        cursor = self.collection.find(filter or {}).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [self.model_cls.from_mongo(doc) for doc in docs]

    async def create(self, model: T) -> T:
        """Create a new document."""
        data = model.to_mongo()
        result = await self.collection.insert_one(data)
        model.id = str(result.inserted_id)
        return model

    async def create_many(self, models: List[T]) -> List[T]:
        if not models:
            return []
        result = await self.collection.insert_many([m.to_mongo() for m in models])
        for model, inserted_id in zip(models, result.inserted_ids):
            model.id = str(inserted_id)
        return models

    async def update(self, id: str, update_data: Dict[str, Any]) -> Optional[T]:
        """Partial update by ID; returns the fresh document."""
        await self.collection.update_one(
            {"_id": _object_id(id)},
            {"$set": update_data}
        )
        return await self.get(id)

    async def delete(self, id: str) -> bool:
        """Delete a document by ID."""
        result = await self.collection.delete_one({"_id": _object_id(id)})
        return result.deleted_count > 0

    async def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching a filter."""
        return await self.collection.count_documents(filter or {})
