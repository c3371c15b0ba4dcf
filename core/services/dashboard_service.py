from typing import Any, Callable, Dict, List
from datetime import datetime, timedelta
from core.database.repositories.alert_repository import AlertRepository
from core.database.repositories.event_repository import EventRepository
from core.database.repositories.policy_repository import PolicyRepository

BUCKET_MINUTES = 10
BUCKET_COUNT = 24  # four hours of ten-minute buckets
RECENT_EVENT_LIMIT = 10

def _bucket_start(moment: datetime) -> datetime:
    return moment.replace(
        minute=(moment.minute // BUCKET_MINUTES) * BUCKET_MINUTES, second=0, microsecond=0
    )

class DashboardService:
    def __init__(self, database, clock: Callable[[], datetime] = datetime.utcnow):
        self.events = EventRepository(database)
        self.alerts = AlertRepository(database)
        self.policies = PolicyRepository(database)
        self.clock = clock

    async def get_stats(self) -> Dict[str, Any]:
        '''Headline counters, the latest events and event volume per ten-minute bucket.'''
        now = self.clock()

        stats = {
            "totalEvents": await self.events.count({}),
            "activeAlerts": await self.alerts.count_open(),
            "activeSources": await self.events.count_sources(),
            "activePolicies": await self.policies.count_active(),
        }

        recent_events = [
            event.model_dump(by_alias=True, exclude={"details"}, mode="json")
            for event in await self.events.recent_events(limit=RECENT_EVENT_LIMIT)
        ]

        return {
            "stats": stats,
            "recentEvents": recent_events,
            "eventsByHour": await self._events_by_interval(now),
        }

    async def _events_by_interval(self, now: datetime) -> List[Dict[str, Any]]:
        buckets: Dict[datetime, int] = {}
        for i in range(BUCKET_COUNT):
            buckets[_bucket_start(now - timedelta(minutes=i * BUCKET_MINUTES))] = 0

        since = now - timedelta(minutes=BUCKET_COUNT * BUCKET_MINUTES)
        for timestamp in await self.events.timestamps_since(since):
            key = _bucket_start(timestamp)
            if key in buckets:
                buckets[key] += 1

        return [
            {"hour": bucket.isoformat() + "Z", "count": count}
            for bucket, count in sorted(buckets.items())
        ]
