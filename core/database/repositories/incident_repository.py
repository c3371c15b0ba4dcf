from typing import List, Dict, Any, Optional
from datetime import datetime
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from core.database.repositories.base_repository import BaseRepository
from core.models.schema.common import Severity
from core.models.schema.incident import Incident, IncidentStatus
from utils.logger import get_logger

logger = get_logger(__name__)

class IncidentRepository(BaseRepository):
    collection_name = "incidents"

    # Attempts at the severity compare-and-swap before giving up on a contended incident
    SEVERITY_CAS_ATTEMPTS = 5

    @staticmethod
    def _correlation_filter(source: str, technique_id: Optional[str], window_start: datetime) -> Dict[str, Any]:
        match_keys: List[Dict[str, Any]] = [{"sources": source}]
        if technique_id is not None:
            match_keys.append({"technique_ids": technique_id})
        return {
            "status": IncidentStatus.OPEN.value,
            "updated_at": {"$gte": window_start},
            "$or": match_keys,
        }

    async def find_correlated(self, source: str, technique_id: Optional[str], window_start: datetime) -> Optional[Incident]:
        '''
        Oldest open incident updated since `window_start` that already holds an
        alert from `source` or an alert with the same non-null technique id.
        '''
        doc = await self.find_one(
            self._correlation_filter(source, technique_id, window_start),
            sort=[("created_at", ASCENDING), ("_id", ASCENDING)],
        )
        return Incident(**doc) if doc else None

    async def attach_alert(
        self,
        incident_id: str,
        alert_id: str,
        source: str,
        technique_id: Optional[str],
        window_start: datetime,
        now: datetime,
    ) -> Optional[Incident]:
        '''
        Add an alert to an incident in one atomic update. The filter re-checks
        that the incident is still open and inside the window; returns None if
        it no longer is. Otherwise returns the incident as it was just before
        the alert was added.
        '''
        object_id = self.to_object_id(incident_id)
        if object_id is None:
            return None
        add_to_set: Dict[str, Any] = {"alert_ids": alert_id, "sources": source}
        if technique_id is not None:
            add_to_set["technique_ids"] = technique_id
        doc = await self.collection.find_one_and_update(
            {
                "_id": object_id,
                "status": IncidentStatus.OPEN.value,
                "updated_at": {"$gte": window_start},
            },
            {"$set": {"updated_at": now}, "$addToSet": add_to_set},
            return_document=ReturnDocument.BEFORE,
        )
        doc = self._serialize(doc)
        return Incident(**doc) if doc else None

    async def detach_alert(
        self,
        incident_id: str,
        alert_id: str,
        source: Optional[str] = None,
        technique_id: Optional[str] = None,
    ) -> None:
        '''
        Undo an attach: pull the alert id plus any correlation key only that
        alert brought in. An incident left without alerts is deleted.
        '''
        object_id = self.to_object_id(incident_id)
        if object_id is None:
            return
        pull: Dict[str, Any] = {"alert_ids": alert_id}
        if source is not None:
            pull["sources"] = source
        if technique_id is not None:
            pull["technique_ids"] = technique_id
        await self.collection.update_one({"_id": object_id}, {"$pull": pull})
        result = await self.collection.delete_one({"_id": object_id, "alert_ids": {"$size": 0}})
        if result.deleted_count:
            logger.info(f"Removed incident {incident_id}, its only alert belongs elsewhere")

    async def raise_severity(self, incident_id: str, severity: Severity) -> Optional[Severity]:
        '''
        Raise the incident severity to `severity` if that is higher. The write
        is conditional on the severity read, so concurrent raises never lower it.
        '''
        severity = Severity(severity)
        object_id = self.to_object_id(incident_id)
        if object_id is None:
            return None
        for _ in range(self.SEVERITY_CAS_ATTEMPTS):
            doc = await self.collection.find_one({"_id": object_id}, {"severity": 1})
            if doc is None:
                return None
            current = Severity(doc["severity"])
            target = Severity.highest(current, severity)
            if target == current:
                return current
            result = await self.collection.update_one(
                {"_id": object_id, "severity": current.value},
                {"$set": {"severity": target.value}},
            )
            if result.matched_count > 0:
                return target
        logger.warning(f"Severity of incident {incident_id} is contended, leaving it unchanged")
        return None

    async def create_incident(
        self,
        severity: Severity,
        summary: str,
        alert_id: str,
        source: str,
        technique_id: Optional[str],
        now: datetime,
    ) -> Incident:
        incident_dict = {
            "severity": Severity(severity).value,
            "status": IncidentStatus.OPEN.value,
            "summary": summary,
            "alert_ids": [alert_id],
            "sources": [source],
            "technique_ids": [technique_id] if technique_id is not None else [],
            "created_at": now,
            "updated_at": now,
        }
        incident_id = await self.insert_one(incident_dict)
        incident_doc = await self.find_by_id(incident_id)
        return Incident(**incident_doc)

    async def get_incident(self, incident_id: str) -> Optional[Incident]:
        doc = await self.find_by_id(incident_id)
        return Incident(**doc) if doc else None

    async def list_incidents(self, limit: int = 200) -> List[Incident]:
        docs = await self.find_many({}, limit=limit, sort=[("updated_at", DESCENDING), ("_id", DESCENDING)])
        return [Incident(**doc) for doc in docs]
