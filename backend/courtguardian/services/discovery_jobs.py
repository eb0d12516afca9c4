"""
Discovery job orchestrator.

Jobs move waiting -> active -> completed | failed. A fixed pool of worker
threads pulls from a single FIFO queue while the scheduler is running.

Two jobs whose areas overlap never run at the same time: every job holds an
advisory lock on the coarse grid cells covered by its query bounding box
(query radius + D_max) for its whole lifetime, and a job is only dispatched
when none of its cells are held. Jobs in disjoint areas run in parallel.

Failed jobs are not retried. Resubmitting creates a brand-new job.
"""
import copy
import itertools
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from courtguardian.core.config import settings
from courtguardian.core.errors import CourtGuardianError, NotFoundError, ValidationError
from courtguardian.services.court_store import CourtStore
from courtguardian.services.deduplication import run_discovery_batch
from courtguardian.services.discovery_cache import DiscoveryCache
from courtguardian.services.places import PlaceSearchProvider
from courtguardian.utils.geo import grid_cells, is_valid_coordinate

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = (JobState.COMPLETED, JobState.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DiscoveryRequest:
    latitude: float
    longitude: float
    radius: int
    sport_type: str


@dataclass
class DiscoveryJob:
    id: str
    request: DiscoveryRequest
    trigger: str
    seq: int
    state: JobState = JobState.WAITING
    enqueued_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[dict] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.state.value,
            "trigger": self.trigger,
            "request": asdict(self.request),
            "enqueued_at": self.enqueued_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": copy.deepcopy(self.result),
            "error": self.error,
        }


class DiscoveryOrchestrator:
    def __init__(
        self,
        store: CourtStore,
        provider: PlaceSearchProvider,
        cache: DiscoveryCache,
        workers: Optional[int] = None,
        cell_degrees: Optional[float] = None,
        allowed_sports: Optional[list] = None,
        max_radius: Optional[int] = None,
        completed_limit: Optional[int] = None,
        failed_limit: Optional[int] = None,
    ):
        self.store = store
        self.provider = provider
        self.cache = cache
        self.worker_count = workers or settings.DISCOVERY_WORKERS
        self.cell_degrees = cell_degrees or settings.AREA_LOCK_CELL_DEGREES
        self.allowed_sports = [s.lower() for s in (allowed_sports or settings.ALLOWED_SPORTS)]
        self.max_radius = max_radius or settings.MAX_RADIUS_METERS
        self.completed_limit = completed_limit if completed_limit is not None else settings.JOB_HISTORY_COMPLETED_LIMIT
        self.failed_limit = failed_limit if failed_limit is not None else settings.JOB_HISTORY_FAILED_LIMIT

        self._cond = threading.Condition()
        self._jobs: dict[str, DiscoveryJob] = {}
        self._waiting: deque[DiscoveryJob] = deque()
        self._job_cells: dict[str, frozenset] = {}
        self._held_cells: set = set()
        self._seq = itertools.count()
        self._running = False
        self._shutdown = False
        self._threads: list[threading.Thread] = []

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def validate_request(self, latitude, longitude, radius, sport_type) -> DiscoveryRequest:
        if not is_valid_coordinate(latitude, longitude):
            raise ValidationError("Latitude must be within [-90, 90] and longitude within [-180, 180]")
        try:
            radius = int(radius)
        except (TypeError, ValueError):
            raise ValidationError("Radius must be a whole number of meters")
        if radius <= 0:
            raise ValidationError("Radius must be greater than 0")
        if radius > self.max_radius:
            raise ValidationError(f"Radius cannot exceed {self.max_radius}m")
        sport = (sport_type or "").strip().lower()
        if sport not in self.allowed_sports:
            raise ValidationError(f"Sport type must be one of: {', '.join(self.allowed_sports)}")
        return DiscoveryRequest(float(latitude), float(longitude), radius, sport)

    def _area_cells(self, request: DiscoveryRequest) -> frozenset:
        radius_km = (request.radius + self.store.max_distance_m) / 1000.0
        return grid_cells(request.latitude, request.longitude, radius_km, self.cell_degrees)

    def enqueue(self, latitude, longitude, radius, sport_type, trigger: str = "manual") -> str:
        """
        Validate and queue one discovery job; returns its id immediately.

        Invalid parameters raise ValidationError and nothing is queued.
        """
        request = self.validate_request(latitude, longitude, radius, sport_type)
        cells = self._area_cells(request)
        with self._cond:
            job = DiscoveryJob(
                id=f"discovery-{uuid.uuid4().hex[:12]}",
                request=request,
                trigger=trigger,
                seq=next(self._seq),
            )
            self._jobs[job.id] = job
            self._job_cells[job.id] = cells
            self._waiting.append(job)
            self._cond.notify_all()
        logger.info(
            f"Enqueued {trigger} discovery job {job.id} for {request.sport_type} courts at "
            f"{request.latitude}, {request.longitude} (radius: {request.radius}m)"
        )
        return job.id

    def has_pending(self, latitude, longitude, radius, sport_type) -> bool:
        """True if an identical request is already waiting or active."""
        request = self.validate_request(latitude, longitude, radius, sport_type)
        with self._cond:
            return any(
                job.request == request and job.state in (JobState.WAITING, JobState.ACTIVE)
                for job in self._jobs.values()
            )

    def resubmit(self, job_id: str) -> str:
        """Queue a new job with the same parameters as an existing one."""
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            request = job.request
        return self.enqueue(request.latitude, request.longitude, request.radius, request.sport_type, trigger="resubmit")

    # ------------------------------------------------------------------
    # Scheduler control
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    def start(self) -> bool:
        """Allow waiting jobs to be dispatched. Returns the previous state."""
        with self._cond:
            was_running = self._running
            self._running = True
            self._cond.notify_all()
        if not was_running:
            logger.info("Discovery scheduler started")
        return was_running

    def stop(self) -> bool:
        """Stop dispatching waiting jobs. Active jobs run to completion."""
        with self._cond:
            was_running = self._running
            self._running = False
        if was_running:
            logger.info("Discovery scheduler stopped")
        return was_running

    def start_workers(self) -> None:
        with self._cond:
            if self._threads:
                return
            self._shutdown = False
            for i in range(self.worker_count):
                thread = threading.Thread(target=self._worker_loop, name=f"discovery-worker-{i}", daemon=True)
                self._threads.append(thread)
        for thread in self._threads:
            thread.start()
        logger.info(f"Started {self.worker_count} discovery workers")

    def shutdown(self, timeout: Optional[float] = 10.0) -> None:
        """Stop the worker threads after their current job."""
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
        with self._cond:
            self._threads = []
        logger.info("Discovery workers shut down")

    # ------------------------------------------------------------------
    # Status / history
    # ------------------------------------------------------------------

    def status(self) -> dict:
        with self._cond:
            counts = {state.value: 0 for state in JobState}
            for job in self._jobs.values():
                counts[job.state.value] += 1
            return {
                "queue": counts,
                "scheduler": {"running": self._running, "workers": self.worker_count},
            }

    def get_job(self, job_id: str) -> dict:
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            return job.to_dict()

    def recent_jobs(self, limit: int = 20, status: Optional[str] = None) -> list[dict]:
        """Most recently enqueued jobs first."""
        if status and status != "all":
            try:
                wanted = JobState(status)
            except ValueError:
                raise ValidationError(f"Unknown job status: {status}")
        else:
            wanted = None
        with self._cond:
            jobs = sorted(self._jobs.values(), key=lambda j: j.seq, reverse=True)
            if wanted is not None:
                jobs = [job for job in jobs if job.state == wanted]
            return [job.to_dict() for job in jobs[:limit]]

    def cleanup(self, older_than: timedelta) -> int:
        """Drop terminal jobs that finished before `now - older_than`."""
        cutoff = _utcnow() - older_than
        with self._cond:
            stale = [
                job_id for job_id, job in self._jobs.items()
                if job.state in TERMINAL_STATES and job.finished_at and job.finished_at < cutoff
            ]
            for job_id in stale:
                self._forget(job_id)
        if stale:
            logger.info(f"Removed {len(stale)} discovery jobs older than {older_than}")
        return len(stale)

    def wait_for_job(self, job_id: str, timeout: Optional[float] = None) -> dict:
        """Block until the job reaches a terminal state (or timeout)."""
        with self._cond:
            if job_id not in self._jobs:
                raise NotFoundError(f"Job {job_id} not found")
            self._cond.wait_for(
                lambda: job_id not in self._jobs or self._jobs[job_id].state in TERMINAL_STATES,
                timeout,
            )
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} was purged")
            return job.to_dict()

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is waiting or active. False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._waiting and not any(j.state == JobState.ACTIVE for j in self._jobs.values()),
                timeout,
            )

    def _forget(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        self._job_cells.pop(job_id, None)

    def _trim_history(self) -> None:
        for state, limit in ((JobState.COMPLETED, self.completed_limit), (JobState.FAILED, self.failed_limit)):
            finished = sorted(
                (job for job in self._jobs.values() if job.state == state),
                key=lambda j: j.seq,
            )
            for job in finished[:max(0, len(finished) - limit)]:
                self._forget(job.id)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _next_dispatchable(self) -> Optional[DiscoveryJob]:
        """Oldest waiting job whose area cells are all free."""
        for job in self._waiting:
            if not (self._job_cells[job.id] & self._held_cells):
                return job
        return None

    def _worker_loop(self) -> None:
        while True:
            with self._cond:
                job = None
                while not self._shutdown:
                    job = self._next_dispatchable() if self._running else None
                    if job is not None:
                        break
                    self._cond.wait()
                if self._shutdown:
                    return
                self._waiting.remove(job)
                cells = self._job_cells[job.id]
                self._held_cells |= cells
                job.state = JobState.ACTIVE
                job.started_at = _utcnow()
            logger.info(f"Discovery job {job.id} started processing")

            result, error = None, None
            try:
                result = self._execute(job)
            except CourtGuardianError as e:
                error = e.detail
                logger.error(f"Discovery job {job.id} failed: {error}")
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                logger.error(f"Discovery job {job.id} failed: {error}", exc_info=True)

            with self._cond:
                self._held_cells -= cells
                job.finished_at = _utcnow()
                if error is None:
                    job.state = JobState.COMPLETED
                    job.result = result
                else:
                    job.state = JobState.FAILED
                    job.error = error
                self._trim_history()
                self._cond.notify_all()
            if error is None:
                logger.info(f"Discovery job {job.id} completed: {result}")

    def _execute(self, job: DiscoveryJob) -> dict:
        request = job.request
        entry = self.cache.get(request.latitude, request.longitude, request.radius, request.sport_type)
        if entry is not None:
            candidates = [c.model_copy(deep=True) for c in entry.candidates]
            from_cache = True
        else:
            candidates = self.provider.search(request.latitude, request.longitude, request.radius, request.sport_type)
            from_cache = False
        pristine = [c.model_copy(deep=True) for c in candidates]

        stats = run_discovery_batch(self.store, candidates, request.latitude, request.longitude, request.radius)
        stats["from_cache"] = from_cache

        if not from_cache:
            self.cache.put(request.latitude, request.longitude, request.radius, request.sport_type, pristine, stats)
        return stats
