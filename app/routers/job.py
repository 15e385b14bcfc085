from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from app.core.config import settings
from app.core.logging_config import logger
from app.dependencies import get_current_actor, get_job_service, require_roles
from app.schemas.common import Location
from app.schemas.job import (
    Job,
    JobAccept,
    JobCancel,
    JobCreate,
    OpenJobsResponse,
    WorkerLocationUpdate,
)
from app.schemas.user import Actor, UserRole
from app.services.job import JobService

router = APIRouter()


@router.post("", response_model=Job, status_code=status.HTTP_201_CREATED)
def create_job(
    job_data: JobCreate,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: JobService = Depends(get_job_service),
):
    """
    Request a trash pickup.

    The address is geocoded when no destination is given; unresolvable
    addresses get fallback coordinates.

    Args:
        job_data: Pickup details
        host: Requesting host (from JWT)
        service: Job service

    Returns:
        Created job
    """
    try:
        logger.info(f"Creating job: host={host.uid}")
        result = service.request_pickup(job_data, host)
        logger.info(f"Job created successfully: id={result['id']}")
        return result
    except Exception as e:
        logger.error(f"Error creating job: {type(e).__name__}: {str(e)}")
        raise


@router.get("", response_model=List[Job])
def get_jobs(
    status: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    service: JobService = Depends(get_job_service),
):
    """
    List jobs visible to the caller, newest first.

    Hosts see their own jobs, workers the jobs assigned to them, admin
    roles everything.
    """
    if actor.role == UserRole.host:
        return service.get_jobs(status=status, host_id=actor.uid)
    if actor.role == UserRole.worker:
        return service.get_jobs(status=status, worker_id=actor.uid)
    return service.get_jobs(status=status)


@router.get("/open", response_model=OpenJobsResponse)
def get_open_jobs(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(settings.DEFAULT_WORK_RADIUS_MILES, gt=0),
    _worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    """
    Open pool split by distance from the worker.

    Without a location every job is reported in range.
    """
    location = Location(lat=lat, lng=lng) if lat is not None and lng is not None else None
    partition = service.open_jobs_near(location, radius)
    return OpenJobsResponse(
        radius_miles=radius,
        in_range=partition.in_range,
        out_of_range=partition.out_of_range,
    )


@router.get("/{job_id}", response_model=Job)
def get_job(
    job_id: str,
    _actor: Actor = Depends(get_current_actor),
    service: JobService = Depends(get_job_service),
):
    return service.get_job(job_id)


@router.post("/{job_id}/approve", response_model=Job)
def approve_job(
    job_id: str,
    actor: Actor = Depends(require_roles(UserRole.host)),
    service: JobService = Depends(get_job_service),
):
    try:
        logger.info(f"Approving job: id={job_id} by={actor.uid}")
        return service.approve_job(job_id, actor)
    except Exception as e:
        logger.error(f"Error approving job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/accept", response_model=Job)
def accept_job(
    job_id: str,
    accept_data: JobAccept,
    worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    """
    Accept an open job; it joins the back of the worker's queue.

    Raises:
        409: If the job was already taken
    """
    try:
        logger.info(f"Accepting job: id={job_id} worker={worker.uid}")
        return service.accept_job(job_id, worker, accept_data.start_location)
    except Exception as e:
        logger.error(f"Error accepting job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/start", response_model=Job)
def start_job(
    job_id: str,
    worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    try:
        logger.info(f"Starting job: id={job_id} worker={worker.uid}")
        return service.start_job(job_id, worker.uid)
    except Exception as e:
        logger.error(f"Error starting job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/complete", response_model=Job)
def complete_job(
    job_id: str,
    worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    try:
        logger.info(f"Completing job: id={job_id} worker={worker.uid}")
        return service.complete_job(job_id, worker.uid)
    except Exception as e:
        logger.error(f"Error completing job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/cancel", response_model=Job)
def cancel_job(
    job_id: str,
    cancel_data: JobCancel,
    actor: Actor = Depends(require_roles(UserRole.host)),
    service: JobService = Depends(get_job_service),
):
    try:
        logger.info(f"Cancelling job: id={job_id} by={actor.uid}")
        return service.cancel_job(job_id, actor, cancel_data.reason)
    except Exception as e:
        logger.error(f"Error cancelling job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/return", response_model=Job)
def return_job_to_queue(
    job_id: str,
    worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    """Give an accepted job back to the open pool."""
    try:
        logger.info(f"Returning job to pool: id={job_id} worker={worker.uid}")
        return service.return_job_to_queue(job_id, worker)
    except Exception as e:
        logger.error(f"Error returning job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.put("/{job_id}/location", response_model=Job)
def update_worker_location(
    job_id: str,
    location_data: WorkerLocationUpdate,
    worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    return service.update_worker_location(job_id, location_data.location, worker.uid)
