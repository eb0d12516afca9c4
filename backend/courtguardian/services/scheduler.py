"""
Periodic discovery sweeps.

While the orchestrator's scheduler is running, every sweep interval queues a
discovery job for each configured sweep area and allowed sport, and purges
old job history. Requests identical to one already waiting or active are
skipped so a slow queue does not pile up repeats.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from courtguardian.core.config import settings
from courtguardian.core.errors import ValidationError
from courtguardian.services.discovery_jobs import DiscoveryOrchestrator

logger = logging.getLogger(__name__)


class SweepScheduler:
    def __init__(
        self,
        orchestrator: DiscoveryOrchestrator,
        areas: Optional[list] = None,
        sports: Optional[list] = None,
        interval_hours: Optional[float] = None,
        history_max_age_days: Optional[int] = None,
    ):
        self.orchestrator = orchestrator
        self.areas = areas if areas is not None else settings.SWEEP_AREAS
        self.sports = sports if sports is not None else orchestrator.allowed_sports
        self.interval_seconds = (interval_hours or settings.SWEEP_INTERVAL_HOURS) * 3600
        self.history_max_age = timedelta(days=history_max_age_days or settings.SWEEP_HISTORY_MAX_AGE_DAYS)
        self.last_sweep_at: Optional[datetime] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_sweep(self) -> int:
        """Queue one round of sweep jobs. Returns the number queued."""
        if not self.orchestrator.is_running:
            logger.debug("Scheduler stopped - skipping sweep")
            return 0

        self.orchestrator.cleanup(self.history_max_age)

        queued = 0
        for area in self.areas:
            radius = area.get("radius", settings.DEFAULT_RADIUS_METERS)
            for sport in self.sports:
                try:
                    if self.orchestrator.has_pending(area["latitude"], area["longitude"], radius, sport):
                        continue
                    self.orchestrator.enqueue(area["latitude"], area["longitude"], radius, sport, trigger="scheduled")
                    queued += 1
                except ValidationError as e:
                    logger.error(f"Bad sweep area {area.get('name')}: {e.detail}")
                    break

        self.last_sweep_at = datetime.now(timezone.utc)
        logger.info(f"Sweep queued {queued} discovery jobs across {len(self.areas)} areas")
        return queued

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_sweep()
            except Exception as e:
                logger.error(f"Error in discovery sweep: {e}", exc_info=True)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="discovery-sweep", daemon=True)
        self._thread.start()
        logger.info(f"Sweep scheduler started (every {self.interval_seconds / 3600:g}h)")

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def status(self) -> dict:
        next_sweep = None
        if self.last_sweep_at is not None:
            next_sweep = self.last_sweep_at + timedelta(seconds=self.interval_seconds)
        return {
            "areas": [area.get("name") for area in self.areas],
            "interval_hours": self.interval_seconds / 3600,
            "last_sweep_at": self.last_sweep_at,
            "next_sweep_at": next_sweep,
        }
