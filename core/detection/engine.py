from typing import Dict, List, Any, Optional, Callable
from datetime import datetime
from pymongo.errors import PyMongoError
from core.database.repositories.alert_repository import AlertRepository
from core.database.repositories.baseline_repository import BaselineRepository
from core.database.repositories.event_repository import EventRepository
from core.database.repositories.incident_repository import IncidentRepository
from core.database.repositories.policy_repository import PolicyRepository
from core.detection.anomaly_detector import AnomalyDetector
from core.detection.correlation_engine import CorrelationEngine
from core.detection.signature_detector import SignatureDetector
from core.models.schema.alert import AlertCreate, Alert, AlertStatus
from core.models.schema.baseline import AnomalyResult
from core.models.schema.common import Severity
from core.models.schema.event import EventIngest, EventStatus, IngestionResult
from core.services.summary_generator import generate_ai_summary
from utils.locks import KeyedLock
from utils.logger import get_logger

logger = get_logger(__name__)

ANOMALY_RISK_SCORE = 50
POLICY_RISK_SCORE = 100
BEHAVIORAL_DETECTION_NAME = "Behavioral Anomaly"
BEHAVIORAL_TACTIC = "Defense Evasion"
ALERT_SEVERITY = Severity.CRITICAL


class DetectionEngine:
    """
    Classifies one incoming event and records the outcome.

    Order of work: behavioral anomaly check, policy match, Event write, then
    for malicious events the Alert write and incident correlation. A policy
    match overrides the anomaly's risk score but keeps its reason.
    """

    def __init__(
        self,
        event_repository: EventRepository,
        alert_repository: AlertRepository,
        policy_repository: PolicyRepository,
        anomaly_detector: AnomalyDetector,
        correlation_engine: CorrelationEngine,
        signature_detector: Optional[SignatureDetector] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.event_repository = event_repository
        self.alert_repository = alert_repository
        self.policy_repository = policy_repository
        self.anomaly_detector = anomaly_detector
        self.correlation_engine = correlation_engine
        self.signature_detector = signature_detector or SignatureDetector()
        self.clock = clock

    @classmethod
    def from_database(
        cls,
        database,
        baseline_locks: Optional[KeyedLock] = None,
        correlation_locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> "DetectionEngine":
        '''Wire the engine and its detectors to one database.'''
        event_repository = EventRepository(database)
        alert_repository = AlertRepository(database)
        return cls(
            event_repository=event_repository,
            alert_repository=alert_repository,
            policy_repository=PolicyRepository(database),
            anomaly_detector=AnomalyDetector(
                BaselineRepository(database), event_repository, locks=baseline_locks, clock=clock
            ),
            correlation_engine=CorrelationEngine(
                alert_repository, IncidentRepository(database), locks=correlation_locks, clock=clock
            ),
            clock=clock,
        )

    async def ingest(self, event: EventIngest) -> IngestionResult:
        """
        Classify and store an event.

        Args:
            event: A validated ingestion payload

        Returns:
            IngestionResult with the stored event id and the classification

        Raises:
            PyMongoError: if a write fails. Writes already made are kept.
        """
        source, event_type, details = event.source, event.type, event.details
        logger.info(f"Analyzing {event_type} event from {source}")

        policies = await self._load_active_policies()

        status = EventStatus.SAFE
        risk_score = 0
        anomaly_reason = None

        anomaly = await self._run_anomaly_detection(source, event_type, details)
        if anomaly.is_anomaly:
            status = EventStatus.MALICIOUS
            risk_score = ANOMALY_RISK_SCORE
            anomaly_reason = anomaly.reason

        matched_policy = self._run_signature_detection(details, policies)
        if matched_policy is not None:
            status = EventStatus.MALICIOUS
            risk_score = POLICY_RISK_SCORE

        stored_event = await self.event_repository.create_event(
            type=event_type,
            source=source,
            details=details,
            risk_score=risk_score,
            status=status,
            timestamp=event.timestamp or self.clock(),
        )
        result = IngestionResult(event_id=stored_event.id, analysis=status, risk_score=risk_score)

        if status != EventStatus.MALICIOUS:
            logger.info(f"Event {stored_event.id} from {source} classified SAFE")
            return result

        try:
            alert = await self._create_alert(stored_event.id, source, matched_policy, anomaly_reason)
            result.alert_id = alert.id
            result.incident_id = await self.correlation_engine.correlate(alert.id, source, ALERT_SEVERITY)
        except PyMongoError as e:
            logger.error(
                f"Malicious event {stored_event.id} stored but alert/incident write failed: {str(e)}"
            )
            raise

        logger.info(
            f"Event {stored_event.id} from {source} classified MALICIOUS "
            f"(alert {result.alert_id}, incident {result.incident_id})"
        )
        return result

    async def _load_active_policies(self) -> List[Dict[str, Any]]:
        try:
            return await self.policy_repository.get_active_policies()
        except Exception as e:
            logger.error(f"Error loading active policies: {str(e)}")
            return []

    async def _run_anomaly_detection(self, source: str, event_type: str, details: Dict[str, Any]) -> AnomalyResult:
        """Run behavioral anomaly detection; failures count as no anomaly."""
        try:
            return await self.anomaly_detector.detect(source, event_type, details)
        except Exception as e:
            logger.error(f"Error in anomaly detection: {str(e)}")
            return AnomalyResult(is_anomaly=False)

    def _run_signature_detection(self, details: Dict[str, Any], policies: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Run policy matching; failures count as no match."""
        try:
            return self.signature_detector.detect(details, policies)
        except Exception as e:
            logger.error(f"Error in signature detection: {str(e)}")
            return None

    async def _create_alert(
        self,
        event_id: str,
        source: str,
        matched_policy: Optional[Dict[str, Any]],
        anomaly_reason: Optional[str],
    ) -> Alert:
        """
        Create the alert for a malicious event.

        The anomaly reason is used as the message even when a policy also
        matched, while MITRE fields come from the policy when there is one.
        """
        if matched_policy is not None:
            detection_name = matched_policy.get('name')
            mitre_tactic = matched_policy.get('mitre_tactic')
            mitre_technique_id = matched_policy.get('mitre_technique_id')
            mitre_technique_name = matched_policy.get('mitre_technique_name')
        else:
            detection_name = BEHAVIORAL_DETECTION_NAME
            mitre_tactic = BEHAVIORAL_TACTIC if anomaly_reason else None
            mitre_technique_id = None
            mitre_technique_name = None

        message = anomaly_reason if anomaly_reason else f"Detected {detection_name} from {source}"

        alert_data = AlertCreate(
            event_id=event_id,
            severity=ALERT_SEVERITY,
            message=message,
            status=AlertStatus.OPEN,
            mitre_tactic=mitre_tactic,
            mitre_technique_id=mitre_technique_id,
            mitre_technique_name=mitre_technique_name,
            ai_summary=generate_ai_summary(detection_name, source, mitre_tactic, mitre_technique_id),
        )
        return await self.alert_repository.create_alert(alert_data)
