from typing import List, Dict, Any, Optional, Sequence, Tuple
from bson import ObjectId

class BaseRepository:
    collection_name: str = ""

    def __init__(self, database):
        if database is None:
            raise ConnectionError("Database connection not established")
        self.db = database
        self.collection = database[self.collection_name]

    @staticmethod
    def _serialize(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        # Records leave the repository with a string `id` in place of `_id`
        if document is None:
            return None
        document = dict(document)
        document["id"] = str(document.pop("_id"))
        return document

    @staticmethod
    def to_object_id(id: str) -> Optional[ObjectId]:
        if not isinstance(id, str) or not ObjectId.is_valid(id):
            return None
        return ObjectId(id)

    async def find_one(self, query: Dict[str, Any], sort: Optional[Sequence[Tuple[str, int]]] = None) -> Optional[Dict[str, Any]]:
        result = await self.collection.find_one(query, sort=list(sort) if sort else None)
        return self._serialize(result)

    async def find_by_id(self, id: str) -> Optional[Dict[str, Any]]:
        object_id = self.to_object_id(id)
        if object_id is None:
            return None
        return await self.find_one({"_id": object_id})

    async def find_by_ids(self, ids: List[str]) -> List[Dict[str, Any]]:
        object_ids = [oid for oid in (self.to_object_id(i) for i in ids) if oid is not None]
        if not object_ids:
            return []
        return await self.find_many({"_id": {"$in": object_ids}}, limit=len(object_ids))

    async def find_many(
        self,
        query: Dict[str, Any],
        limit: int = 100,
        skip: int = 0,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        cursor = cursor.skip(skip).limit(limit)
        results = await cursor.to_list(length=limit)
        return [self._serialize(result) for result in results]

    async def count(self, query: Dict[str, Any]) -> int:
        return await self.collection.count_documents(query)

    async def distinct(self, key: str, query: Optional[Dict[str, Any]] = None) -> List[Any]:
        return await self.collection.distinct(key, query or {})

    async def insert_one(self, document: Dict[str, Any]) -> str:
        result = await self.collection.insert_one(document)
        return str(result.inserted_id)

    async def update_one(self, id: str, update_data: Dict[str, Any]) -> bool:
        object_id = self.to_object_id(id)
        if object_id is None:
            return False
        result = await self.collection.update_one({"_id": object_id}, {"$set": update_data})
        return result.matched_count > 0
