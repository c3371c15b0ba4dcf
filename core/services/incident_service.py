from typing import Dict, List, Optional
from core.database.repositories.alert_repository import AlertRepository
from core.database.repositories.event_repository import EventRepository
from core.database.repositories.incident_repository import IncidentRepository
from core.models.schema.alert import Alert, AlertWithContext, AlertIncidentRef
from core.models.schema.event import Event
from core.models.schema.incident import (
    Incident,
    IncidentAlert,
    IncidentWithAlerts,
    IncidentDetails,
    TimelineEntry,
)

class IncidentService:
    """Read side for analysts: alerts and incidents joined with their events."""

    def __init__(self, database):
        self.alerts = AlertRepository(database)
        self.events = EventRepository(database)
        self.incidents = IncidentRepository(database)

    async def _events_by_id(self, alerts: List[Alert]) -> Dict[str, Event]:
        docs = await self.events.find_by_ids(list({alert.event_id for alert in alerts}))
        return {doc["id"]: Event(**doc) for doc in docs}

    async def list_alerts(self) -> List[AlertWithContext]:
        alerts = await self.alerts.list_alerts()
        events = await self._events_by_id(alerts)
        incident_docs = await self.incidents.find_by_ids(
            list({alert.incident_id for alert in alerts if alert.incident_id})
        )
        incidents = {doc["id"]: AlertIncidentRef(**doc) for doc in incident_docs}
        return [
            AlertWithContext(
                **alert.model_dump(),
                event=events.get(alert.event_id),
                incident=incidents.get(alert.incident_id) if alert.incident_id else None,
            )
            for alert in alerts
        ]

    async def _with_alerts(self, incident: Incident) -> IncidentWithAlerts:
        alerts = await self.alerts.alerts_for_incident(incident.id)
        events = await self._events_by_id(alerts)
        return IncidentWithAlerts(
            **incident.model_dump(),
            alerts=[IncidentAlert(**alert.model_dump(), event=events.get(alert.event_id)) for alert in alerts],
        )

    async def list_incidents(self) -> List[IncidentWithAlerts]:
        incidents = await self.incidents.list_incidents()
        return [await self._with_alerts(incident) for incident in incidents]

    async def get_incident_details(self, incident_id: str) -> Optional[IncidentDetails]:
        """
        Incident with its alerts and a single timeline of alert and event
        entries ordered by time.
        """
        incident = await self.incidents.get_incident(incident_id)
        if incident is None:
            return None
        with_alerts = await self._with_alerts(incident)

        timeline: List[TimelineEntry] = []
        for alert in with_alerts.alerts:
            source = alert.event.source if alert.event else ""
            timeline.append(TimelineEntry(
                type="ALERT",
                timestamp=alert.created_at,
                severity=alert.severity,
                message=alert.message,
                mitre_tactic=alert.mitre_tactic,
                mitre_technique_id=alert.mitre_technique_id,
                source=source,
                ai_summary=alert.ai_summary,
            ))
            if alert.event:
                timeline.append(TimelineEntry(
                    type="EVENT",
                    timestamp=alert.event.timestamp,
                    message=f"Event {alert.event.type} recorded",
                    details=alert.event.details,
                    source=alert.event.source,
                ))

        timeline.sort(key=lambda entry: entry.timestamp)
        return IncidentDetails(**with_alerts.model_dump(), timeline=timeline)
