from typing import List, Dict, Any, Optional
from datetime import datetime
from pymongo import ASCENDING, DESCENDING
from core.database.repositories.base_repository import BaseRepository

class PolicyRepository(BaseRepository):
    collection_name = "policies"

    async def get_active_policies(self) -> List[Dict[str, Any]]:
        '''Active policies, oldest first. This order decides which policy wins a match.'''
        cursor = self.collection.find({"is_active": True}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        docs = await cursor.to_list(length=None)
        return [self._serialize(doc) for doc in docs]

    async def list_policies(self, limit: int = 500) -> List[Dict[str, Any]]:
        return await self.find_many({}, limit=limit, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])

    async def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"name": name})

    async def count_active(self) -> int:
        return await self.count({"is_active": True})

    async def create_policy(self, policy_data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.utcnow()
        policy_data = dict(policy_data)
        policy_data.setdefault("created_at", now)
        policy_data["updated_at"] = now
        policy_id = await self.insert_one(policy_data)
        return await self.find_by_id(policy_id)

    async def update_policy(self, policy_id: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        update_data = dict(update_data)
        update_data["updated_at"] = datetime.utcnow()
        if await self.update_one(policy_id, update_data):
            return await self.find_by_id(policy_id)
        return None
