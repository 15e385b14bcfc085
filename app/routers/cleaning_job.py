from fastapi import APIRouter, Depends, status
from typing import List
from app.core.logging_config import logger
from app.dependencies import get_cleaning_job_service, get_current_actor, require_roles
from app.schemas.cleaning_job import (
    BidAcceptResponse,
    BidCreate,
    CleaningAssign,
    CleaningJob,
    CleaningJobCreate,
)
from app.schemas.job import JobCancel
from app.schemas.user import Actor, UserRole
from app.services.cleaning_job import CleaningJobService

router = APIRouter()


@router.post("", response_model=CleaningJob, status_code=status.HTTP_201_CREATED)
def create_cleaning_job(
    job_data: CleaningJobCreate,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    """
    Post a cleaning job open for bids.

    Args:
        job_data: Cleaning details
        host: Posting host (from JWT)
        service: Cleaning job service

    Returns:
        Created cleaning job
    """
    try:
        logger.info(f"Creating cleaning job: host={host.uid}")
        result = service.create_cleaning_job(job_data, host)
        logger.info(f"Cleaning job created successfully: id={result['id']}")
        return result
    except Exception as e:
        logger.error(f"Error creating cleaning job: {type(e).__name__}: {str(e)}")
        raise


@router.get("", response_model=List[CleaningJob])
def get_cleaning_jobs(
    actor: Actor = Depends(get_current_actor),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    return service.get_cleaning_jobs_for(actor)


@router.get("/{job_id}", response_model=CleaningJob)
def get_cleaning_job(
    job_id: str,
    _actor: Actor = Depends(get_current_actor),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    return service.get_cleaning_job(job_id)


@router.post("/{job_id}/bids", response_model=CleaningJob, status_code=status.HTTP_201_CREATED)
def place_bid(
    job_id: str,
    bid_data: BidCreate,
    cleaner: Actor = Depends(require_roles(UserRole.cleaner)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    try:
        logger.info(f"Placing bid: job={job_id} cleaner={cleaner.uid}")
        return service.place_bid(job_id, cleaner, bid_data)
    except Exception as e:
        logger.error(f"Error placing bid on {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/bids/{bid_id}/accept", response_model=BidAcceptResponse)
def accept_bid(
    job_id: str,
    bid_id: str,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    """
    Accept one bid; the rest are rejected and the cleaner joins the host's team.

    Raises:
        404: If the bid does not exist
        409: If a bid was already accepted
    """
    try:
        logger.info(f"Accepting bid: job={job_id} bid={bid_id} host={host.uid}")
        job, member = service.accept_bid(job_id, bid_id, host)
        return BidAcceptResponse(job=job, team_member=member)
    except Exception as e:
        logger.error(f"Error accepting bid {bid_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/assign", response_model=CleaningJob)
def assign_cleaning_job(
    job_id: str,
    assign_data: CleaningAssign,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    try:
        logger.info(f"Assigning cleaning job: id={job_id} cleaner={assign_data.cleaner_id} host={host.uid}")
        return service.assign_cleaning_job(job_id, assign_data.cleaner_id, assign_data.cleaner_name)
    except Exception as e:
        logger.error(f"Error assigning cleaning job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/start", response_model=CleaningJob)
def start_cleaning_job(
    job_id: str,
    cleaner: Actor = Depends(require_roles(UserRole.cleaner)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    try:
        logger.info(f"Starting cleaning job: id={job_id} cleaner={cleaner.uid}")
        return service.start_cleaning_job(job_id, cleaner.uid)
    except Exception as e:
        logger.error(f"Error starting cleaning job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/complete", response_model=CleaningJob)
def complete_cleaning_job(
    job_id: str,
    cleaner: Actor = Depends(require_roles(UserRole.cleaner)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    try:
        logger.info(f"Completing cleaning job: id={job_id} cleaner={cleaner.uid}")
        return service.complete_cleaning_job(job_id, cleaner.uid)
    except Exception as e:
        logger.error(f"Error completing cleaning job {job_id}: {type(e).__name__}: {str(e)}")
        raise


@router.post("/{job_id}/cancel", response_model=CleaningJob)
def cancel_cleaning_job(
    job_id: str,
    cancel_data: JobCancel,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: CleaningJobService = Depends(get_cleaning_job_service),
):
    try:
        logger.info(f"Cancelling cleaning job: id={job_id} by={host.uid}")
        return service.cancel_cleaning_job(job_id, host, cancel_data.reason)
    except Exception as e:
        logger.error(f"Error cancelling cleaning job {job_id}: {type(e).__name__}: {str(e)}")
        raise
