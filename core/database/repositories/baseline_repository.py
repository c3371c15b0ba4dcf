from typing import Any, Optional, Tuple
from datetime import datetime
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from core.database.repositories.base_repository import BaseRepository
from core.models.schema.baseline import BehavioralBaseline, VolumeStats

class BaselineRepository(BaseRepository):
    """Per-(source, metric) behavioral state. One document per pair."""

    collection_name = "behavioral_baselines"

    async def get_baseline(self, source: str, metric: str) -> Optional[BehavioralBaseline]:
        doc = await self.find_one({"source": source, "metric": metric})
        return BehavioralBaseline(**doc) if doc else None

    async def create_if_absent(self, source: str, metric: str, value: Any) -> Tuple[BehavioralBaseline, bool]:
        '''
        Insert the baseline unless one exists, as a single upsert.
        Returns the stored baseline and whether this call created it.
        '''
        now = datetime.utcnow()
        try:
            before = await self.collection.find_one_and_update(
                {"source": source, "metric": metric},
                {"$setOnInsert": {"value": value, "created_at": now, "updated_at": now}},
                upsert=True,
                return_document=ReturnDocument.BEFORE,
            )
        except DuplicateKeyError:
            # Another writer inserted the pair between our match and insert
            before = await self.collection.find_one({"source": source, "metric": metric})
        if before is not None:
            return BehavioralBaseline(**self._serialize(before)), False
        created = await self.find_one({"source": source, "metric": metric})
        return BehavioralBaseline(**created), True

    async def swap_volume(self, baseline_id: str, expected: VolumeStats, new: VolumeStats) -> bool:
        '''Replace volume stats only if they still equal `expected`.'''
        object_id = self.to_object_id(baseline_id)
        if object_id is None:
            return False
        result = await self.collection.update_one(
            {
                "_id": object_id,
                "value.avg": expected.avg,
                "value.threshold": expected.threshold,
            },
            {"$set": {"value": new.model_dump(), "updated_at": datetime.utcnow()}},
        )
        return result.matched_count > 0
