from fastapi import APIRouter, Depends
from app.dependencies import get_job_service, require_roles
from app.schemas.job import WorkerQueueResponse
from app.schemas.user import Actor, UserRole
from app.services.job import JobService

router = APIRouter()


@router.get("/me/queue", response_model=WorkerQueueResponse)
def get_my_queue(
    worker: Actor = Depends(require_roles(UserRole.worker)),
    service: JobService = Depends(get_job_service),
):
    """
    The worker's current job and full ordered queue.

    ``current`` is the in-progress job when there is one, otherwise the
    head of the queue.
    """
    current, queue = service.worker_queue(worker.uid)
    return WorkerQueueResponse(current=current, queue=queue)
