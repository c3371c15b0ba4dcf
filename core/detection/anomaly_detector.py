from typing import Dict, Any, Optional, Callable
from datetime import datetime, timedelta
import math
from config import settings
from core.database.repositories.baseline_repository import BaselineRepository
from core.database.repositories.event_repository import EventRepository
from core.models.schema.baseline import AnomalyResult, VolumeStats, KNOWN_PROCESSES, EVENT_VOLUME
from utils.locks import KeyedLock
from utils.logger import get_logger

logger = get_logger(__name__)

PROCESS_SPAWN = "PROCESS_SPAWN"

class AnomalyDetector:
    """
    Behavioral anomaly detection against adaptive per-source baselines.

    Two checks run for every event:
    - new process: a PROCESS_SPAWN whose process was never seen on the source
    - event volume: the trailing-window event rate exceeds the source's threshold

    Unseen processes are never learned here. They keep flagging until an
    analyst reviews them.
    """

    def __init__(
        self,
        baseline_repository: BaselineRepository,
        event_repository: EventRepository,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        window_seconds: int = settings.VOLUME_WINDOW_SECONDS,
        bootstrap_threshold: int = settings.VOLUME_BOOTSTRAP_THRESHOLD,
        ema_weight: float = settings.VOLUME_EMA_WEIGHT,
        threshold_multiplier: int = settings.VOLUME_THRESHOLD_MULTIPLIER,
    ):
        self.baselines = baseline_repository
        self.events = event_repository
        self.locks = locks or KeyedLock()
        self.clock = clock
        self.window_seconds = window_seconds
        self.bootstrap_threshold = bootstrap_threshold
        self.ema_weight = ema_weight
        self.threshold_multiplier = threshold_multiplier
        self.volume_update_attempts = 3

    async def detect(self, source: str, event_type: str, details: Dict[str, Any]) -> AnomalyResult:
        """
        Evaluate one event against the source's baselines.

        Args:
            source: Agent identifier
            event_type: Event type, e.g. PROCESS_SPAWN
            details: Event details map

        Returns:
            AnomalyResult; when both checks fire the new-process reason is kept
        """
        async with self.locks.hold(source):
            process_reason = await self._check_new_process(source, event_type, details)
            # Always runs so the volume baseline keeps learning
            volume_reason = await self._check_event_volume(source)

        reason = process_reason or volume_reason
        if reason:
            logger.info(reason)
            return AnomalyResult(is_anomaly=True, reason=reason)
        return AnomalyResult(is_anomaly=False)

    async def _check_new_process(self, source: str, event_type: str, details: Dict[str, Any]) -> Optional[str]:
        if event_type != PROCESS_SPAWN:
            return None
        process_name = details.get('process')
        if not process_name:
            return None

        baseline, created = await self.baselines.create_if_absent(source, KNOWN_PROCESSES, [process_name])
        if created:
            logger.debug(f"Learned first process baseline for {source}: {process_name}")
            return None

        known_processes = baseline.value or []
        if process_name not in known_processes:
            return (
                f"Anomaly: New process '{process_name}' executed on {source}. "
                f"Never seen in previous baselines."
            )
        return None

    async def _check_event_volume(self, source: str) -> Optional[str]:
        window_start = self.clock() - timedelta(seconds=self.window_seconds)
        event_count = await self.events.count_since(source, window_start)

        initial = VolumeStats(avg=float(event_count or 1), threshold=self.bootstrap_threshold)
        baseline, created = await self.baselines.create_if_absent(source, EVENT_VOLUME, initial.model_dump())
        if created:
            logger.debug(f"Initialized volume baseline for {source}: {initial.model_dump()}")
            return None

        for _ in range(self.volume_update_attempts):
            stats = VolumeStats(**baseline.value)
            if event_count > stats.threshold:
                # Spikes never feed the average
                return (
                    f"Anomaly: Event spike on {source}. Frequency ({event_count} eps) "
                    f"exceeds baseline threshold ({stats.threshold} eps)."
                )

            updated = self.next_volume_stats(stats, event_count)
            if await self.baselines.swap_volume(baseline.id, stats, updated):
                return None

            baseline = await self.baselines.get_baseline(source, EVENT_VOLUME)
            if baseline is None:
                break

        logger.warning(f"Volume baseline for {source} kept changing concurrently, update skipped")
        return None

    def next_volume_stats(self, stats: VolumeStats, event_count: int) -> VolumeStats:
        '''Exponential moving average of the windowed count, with a floor on the threshold.'''
        new_avg = stats.avg * (1 - self.ema_weight) + event_count * self.ema_weight
        threshold = max(self.bootstrap_threshold, math.floor(new_avg * self.threshold_multiplier))
        return VolumeStats(avg=new_avg, threshold=threshold)
