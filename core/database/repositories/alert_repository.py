from typing import List, Dict, Any, Optional
from datetime import datetime
from pymongo import ASCENDING, DESCENDING
from core.database.repositories.base_repository import BaseRepository
from core.models.schema.alert import AlertCreate, Alert, AlertStatus

class AlertRepository(BaseRepository):
    collection_name = "alerts"

    async def create_alert(self, alert_data: AlertCreate) -> Alert:
        alert_dict = alert_data.model_dump(mode="json")

        now = datetime.utcnow()
        alert_dict["incident_id"] = None
        alert_dict["created_at"] = now
        alert_dict["updated_at"] = now

        alert_id = await self.insert_one(alert_dict)
        alert_doc = await self.find_by_id(alert_id)
        return Alert(**alert_doc)

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        doc = await self.find_by_id(alert_id)
        return Alert(**doc) if doc else None

    async def assign_incident(self, alert_id: str, incident_id: str) -> bool:
        '''Link an alert to an incident. Only succeeds while the alert has no incident.'''
        object_id = self.to_object_id(alert_id)
        if object_id is None:
            return False
        result = await self.collection.update_one(
            {"_id": object_id, "incident_id": None},
            {"$set": {"incident_id": incident_id, "updated_at": datetime.utcnow()}},
        )
        return result.matched_count > 0

    async def update_alert_status(self, alert_id: str, status: AlertStatus) -> Optional[Alert]:
        update_data = {
            "status": AlertStatus(status).value,
            "updated_at": datetime.utcnow()
        }
        success = await self.update_one(alert_id, update_data)
        if success:
            alert_doc = await self.find_by_id(alert_id)
            return Alert(**alert_doc)
        return None

    async def alerts_for_incident(self, incident_id: str) -> List[Alert]:
        cursor = self.collection.find({"incident_id": incident_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        docs = await cursor.to_list(length=None)
        return [Alert(**self._serialize(doc)) for doc in docs]

    async def list_alerts(self, limit: int = 500) -> List[Alert]:
        docs = await self.find_many({}, limit=limit, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])
        return [Alert(**doc) for doc in docs]

    async def count_open(self) -> int:
        return await self.count({"status": AlertStatus.OPEN.value})
