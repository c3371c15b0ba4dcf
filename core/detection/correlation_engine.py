from typing import Optional, Callable
from datetime import datetime, timedelta
from config import settings
from core.database.repositories.alert_repository import AlertRepository
from core.database.repositories.incident_repository import IncidentRepository
from core.exceptions import NotFoundError
from core.models.schema.common import Severity
from utils.locks import KeyedLock
from utils.logger import get_logger

logger = get_logger(__name__)

class CorrelationEngine:
    """
    Groups alerts into incidents.

    An alert joins the oldest OPEN incident updated within the correlation
    window that already holds an alert from the same source, or an alert with
    the same non-null MITRE technique id. Otherwise it opens a new incident.
    Incidents that exist independently are never merged.
    """

    def __init__(
        self,
        alert_repository: AlertRepository,
        incident_repository: IncidentRepository,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        window_minutes: int = settings.CORRELATION_WINDOW,
    ):
        self.alerts = alert_repository
        self.incidents = incident_repository
        self.locks = locks or KeyedLock()
        self.clock = clock
        self.window = timedelta(minutes=window_minutes)

    async def correlate(self, alert_id: str, source: str, severity: Severity = Severity.CRITICAL) -> str:
        """
        Attach an alert to an incident.

        Args:
            alert_id: The newly created alert
            source: Source of the alert's event
            severity: Severity of the alert

        Returns:
            The incident id the alert belongs to
        """
        alert = await self.alerts.get_alert(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        if alert.incident_id:
            # Incident links are permanent
            return alert.incident_id

        technique_id = alert.mitre_technique_id

        async with self.locks.hold(source):
            now = self.clock()
            window_start = now - self.window

            incident = await self.incidents.find_correlated(source, technique_id, window_start)
            if incident is not None:
                before = await self.incidents.attach_alert(
                    incident.id, alert_id, source, technique_id, window_start, now
                )
                if before is not None:
                    linked = await self._link(alert_id, before.id, created=False)
                    if linked == before.id:
                        await self.incidents.raise_severity(before.id, severity)
                    else:
                        await self.incidents.detach_alert(
                            before.id,
                            alert_id,
                            source=None if source in before.sources else source,
                            technique_id=None if technique_id in before.technique_ids else technique_id,
                        )
                    return linked
                logger.info(f"Incident {incident.id} left the correlation window, opening a new one")

            summary = self.incident_summary(source, technique_id)
            created = await self.incidents.create_incident(severity, summary, alert_id, source, technique_id, now)
            linked = await self._link(alert_id, created.id, created=True)
            if linked != created.id:
                await self.incidents.detach_alert(created.id, alert_id)
            return linked

    async def _link(self, alert_id: str, incident_id: str, created: bool) -> str:
        '''Link the alert to `incident_id`. Returns the incident it ends up linked to.'''
        if not await self.alerts.assign_incident(alert_id, incident_id):
            # Linked by a concurrent call; keep the first link
            alert = await self.alerts.get_alert(alert_id)
            if alert is not None and alert.incident_id:
                logger.warning(f"Alert {alert_id} already linked to incident {alert.incident_id}")
                return alert.incident_id
        action = "Opened incident" if created else "Correlated alert into incident"
        logger.info(f"{action} {incident_id} (alert {alert_id})")
        return incident_id

    @staticmethod
    def incident_summary(source: str, technique_id: Optional[str]) -> str:
        return f"Security Incident involving {source}. Grouped via {technique_id or 'shared source'}."
