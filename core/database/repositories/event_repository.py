from typing import List, Dict, Any, Optional
from datetime import datetime
from pymongo import DESCENDING
from core.database.repositories.base_repository import BaseRepository
from core.models.schema.event import Event, EventStatus

class EventRepository(BaseRepository):
    collection_name = "events"

    async def create_event(
        self,
        type: str,
        source: str,
        details: Dict[str, Any],
        risk_score: int,
        status: EventStatus,
        timestamp: datetime,
    ) -> Event:
        event_dict = {
            "type": type,
            "source": source,
            "details": details,
            "risk_score": risk_score,
            "status": status.value,
            "timestamp": timestamp,
        }
        event_id = await self.insert_one(event_dict)
        return Event(id=event_id, **{k: v for k, v in event_dict.items() if k != "_id"})

    async def get_event(self, event_id: str) -> Optional[Event]:
        doc = await self.find_by_id(event_id)
        return Event(**doc) if doc else None

    async def count_since(self, source: str, since: datetime) -> int:
        '''Count events from a source whose timestamp is at or after `since`.'''
        return await self.count({"source": source, "timestamp": {"$gte": since}})

    async def recent_events(self, limit: int = 50) -> List[Event]:
        docs = await self.find_many({}, limit=limit, sort=[("timestamp", DESCENDING), ("_id", DESCENDING)])
        return [Event(**doc) for doc in docs]

    async def timestamps_since(self, since: datetime) -> List[datetime]:
        cursor = self.collection.find({"timestamp": {"$gt": since}}, {"timestamp": 1})
        docs = await cursor.to_list(length=None)
        return [doc["timestamp"] for doc in docs]

    async def count_sources(self) -> int:
        return len(await self.distinct("source"))
