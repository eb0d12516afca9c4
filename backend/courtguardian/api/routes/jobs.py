"""
Discovery job administration.

Trigger discovery runs, watch the queue, control the scheduler, and manage
job history and the discovery cache. Admin only.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, List, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from courtguardian.api.deps import get_cache, get_orchestrator, get_sweeper
from courtguardian.core.config import settings
from courtguardian.core.errors import ValidationError
from courtguardian.core.security import Caller, get_admin
from courtguardian.services.discovery_cache import DiscoveryCache
from courtguardian.services.discovery_jobs import DiscoveryOrchestrator
from courtguardian.services.scheduler import SweepScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Request / Response Schemas
# =============================================================================

class TriggerRequest(BaseModel):
    latitude: float
    longitude: float
    radius: int = settings.DEFAULT_RADIUS_METERS
    sport_type: str


class TriggerResponse(BaseModel):
    job_id: str
    message: str


class QueueCounts(BaseModel):
    waiting: int
    active: int
    completed: int
    failed: int


class SchedulerState(BaseModel):
    running: bool
    workers: int
    last_sweep_at: Optional[datetime] = None
    next_sweep_at: Optional[datetime] = None


class StatusResponse(BaseModel):
    queue: QueueCounts
    scheduler: SchedulerState


class JobRequest(BaseModel):
    latitude: float
    longitude: float
    radius: int
    sport_type: str


class JobResponse(BaseModel):
    id: str
    status: str
    trigger: str
    request: JobRequest
    enqueued_at: datetime
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    result: Optional[dict[str, Any]]
    error: Optional[str]


class SchedulerControlResponse(BaseModel):
    running: bool
    message: str


class CleanupResponse(BaseModel):
    removed: int
    message: str


class CacheStatsResponse(BaseModel):
    total_entries: int
    valid_entries: int
    ttl_seconds: float
    precision: int


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/status", response_model=StatusResponse)
def get_status(
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
    sweeper: SweepScheduler = Depends(get_sweeper),
):
    """Queue counters and scheduler state."""
    status = orchestrator.status()
    sweep = sweeper.status()
    status["scheduler"]["last_sweep_at"] = sweep["last_sweep_at"]
    status["scheduler"]["next_sweep_at"] = sweep["next_sweep_at"]
    return status


@router.get("/recent", response_model=List[JobResponse])
def get_recent_jobs(
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="waiting, active, completed, failed or all"),
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.recent_jobs(limit=limit, status=status)


@router.post("/trigger-discovery", response_model=TriggerResponse)
def trigger_discovery(
    request: TriggerRequest,
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
):
    """
    Queue a discovery run. Returns immediately; poll the job for its outcome.
    """
    job_id = orchestrator.enqueue(request.latitude, request.longitude, request.radius, request.sport_type)
    logger.info(f"Discovery job {job_id} triggered by {caller.user_id}")
    return TriggerResponse(job_id=job_id, message="Discovery job queued")


@router.post("/scheduler/{action}", response_model=SchedulerControlResponse)
def control_scheduler(
    action: str,
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
):
    if action == "start":
        was_running = orchestrator.start()
        message = "Scheduler already running" if was_running else "Scheduler started"
    elif action == "stop":
        was_running = orchestrator.stop()
        message = "Scheduler stopped" if was_running else "Scheduler already stopped"
    else:
        raise ValidationError('Action must be "start" or "stop"')
    logger.info(f"Scheduler {action} requested by {caller.user_id}")
    return SchedulerControlResponse(running=orchestrator.is_running, message=message)


@router.delete("/cleanup", response_model=CleanupResponse)
def cleanup_jobs(
    days: int = Query(7, ge=0, le=365),
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
):
    """Remove completed and failed jobs older than `days`."""
    removed = orchestrator.cleanup(timedelta(days=days))
    return CleanupResponse(removed=removed, message=f"Removed {removed} jobs older than {days} days")


@router.get("/cache/stats", response_model=CacheStatsResponse)
def get_cache_stats(
    caller: Caller = Depends(get_admin),
    cache: DiscoveryCache = Depends(get_cache),
):
    return cache.stats()


@router.delete("/cache")
def clear_cache(
    caller: Caller = Depends(get_admin),
    cache: DiscoveryCache = Depends(get_cache),
):
    cleared = cache.clear()
    logger.info(f"Discovery cache cleared by {caller.user_id} ({cleared} entries)")
    return {"cleared": cleared}


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.get_job(job_id)


@router.post("/{job_id}/resubmit", response_model=TriggerResponse)
def resubmit_job(
    job_id: str,
    caller: Caller = Depends(get_admin),
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),
):
    """Queue a fresh job with the same parameters. The original job is untouched."""
    new_id = orchestrator.resubmit(job_id)
    return TriggerResponse(job_id=new_id, message=f"Resubmitted {job_id}")
