import threading
import uuid
from typing import Dict, List, Optional, Tuple

from app.core.exceptions import BackendUnavailableError, ConflictError, NotFoundError, ValidationError
from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.crud.subscriptions import Document
from app.schemas.common import Location, location_dict
from app.schemas.job import ACTIVE_JOB_STATUSES, TERMINAL_JOB_STATUSES, JobCreate, JobStatus
from app.schemas.user import Actor
from app.services.geocoding import GeocodingService
from app.services.notifications import NotificationSink
from app.services.radius import RadiusPartition, partition_by_radius
from app.services.worker_queue import QueueManager, pick_current
from app.utils.clock import Clock, now_ms
from app.utils.geo import distance_meters, eta_minutes, progress_percent

COLLECTION = "jobs"


class PendingJobOutbox:
    """
    Jobs created while the document store was unreachable.

    They are handed back to the host immediately and written to the store
    by ``flush`` once it is reachable again.
    """

    def __init__(self):
        self._pending: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def hold(self, fields: dict) -> Document:
        local_id = f"local-{uuid.uuid4().hex}"
        with self._lock:
            self._pending[local_id] = fields
        return {**fields, "id": local_id, "pendingSync": True}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending(self) -> List[Document]:
        with self._lock:
            return [{**fields, "id": local_id, "pendingSync": True} for local_id, fields in self._pending.items()]

    def flush(self, store: DocumentStore) -> List[Document]:
        """Write held jobs; stops at the first failure and keeps the rest."""
        synced = []
        with self._lock:
            for local_id in list(self._pending):
                try:
                    synced.append(store.create(COLLECTION, self._pending[local_id]))
                except BackendUnavailableError:
                    logger.warning(f"Outbox flush stopped: {len(self._pending)} job(s) still pending")
                    break
                del self._pending[local_id]
        if synced:
            logger.info(f"Outbox flushed {len(synced)} job(s)")
        return synced


class JobService:
    """
    Trash pickup job lifecycle.

    Every operation reads the job, checks the transition and issues its
    writes in sequence. There is no lock: two workers accepting the same
    open job from stale reads both succeed and the last write wins.

    Args:
        store: Document store handle
        queue: Worker queue manager (trash domain)
        notifier: Notification sink
        geocoder: Used to resolve pickup addresses without coordinates
        outbox: Holds jobs created while the store is unavailable
        clock: Epoch-millisecond clock
    """

    def __init__(
        self,
        store: DocumentStore,
        queue: QueueManager,
        notifier: NotificationSink,
        geocoder: Optional[GeocodingService] = None,
        outbox: Optional[PendingJobOutbox] = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.queue = queue
        self.notifier = notifier
        self.geocoder = geocoder
        self.outbox = outbox
        self.clock = clock

    def sync_outbox(self) -> List[Document]:
        """Write locally held jobs to the store if any are waiting."""
        if self.outbox is None or not len(self.outbox):
            return []
        return self.outbox.flush(self.store)

    def get_job(self, job_id: str) -> Document:
        """
        Get a job by ID.

        Raises:
            NotFoundError: If job not found
        """
        job = self.store.get(COLLECTION, job_id)
        if not job:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def get_jobs(
        self,
        status: Optional[str] = None,
        host_id: Optional[str] = None,
        worker_id: Optional[str] = None,
    ) -> List[Document]:
        filters = {}
        if status:
            filters["status"] = status
        if host_id:
            filters["hostId"] = host_id
        if worker_id:
            filters["workerId"] = worker_id
        self.sync_outbox()
        jobs = self.store.query(COLLECTION, filters)
        return sorted(jobs, key=lambda job: job.get("createdAt") or 0, reverse=True)

    def create_job(self, job_data: JobCreate, host: Optional[Actor] = None) -> Document:
        """
        Create a new pickup job.

        The job starts in ``pending_approval`` when host approval is
        required, otherwise ``open``. If the store is unreachable and an
        outbox is configured the job is held locally instead, and written
        ahead of the next create or listing that reaches the store.

        Raises:
            ValidationError: If address or destination is missing
        """
        if not job_data.address or not job_data.address.strip():
            raise ValidationError("Address is required")
        if job_data.destination is None:
            raise ValidationError("Destination is required")

        status = JobStatus.pending_approval if job_data.needs_approval else JobStatus.open
        payload = {
            "address": job_data.address.strip(),
            "destination": location_dict(job_data.destination),
            "status": status.value,
            "createdAt": self.clock(),
            "progress": 0,
            "needsApproval": job_data.needs_approval,
            "isRecurring": job_data.is_recurring,
        }
        optional = {
            "city": job_data.city,
            "state": job_data.state,
            "zipCode": job_data.zip_code,
            "notes": job_data.notes.strip() if job_data.notes else None,
        }
        # Only add optional fields if they have values
        payload.update({k: v for k, v in optional.items() if v})
        if job_data.is_recurring and job_data.recurring_schedule:
            payload["recurringSchedule"] = job_data.recurring_schedule.model_dump(by_alias=True, mode="json")
        if host:
            payload["hostId"] = host.uid
            if host.first_name:
                payload["hostFirstName"] = host.first_name
            if host.last_name:
                payload["hostLastName"] = host.last_name

        try:
            self.sync_outbox()
            job = self.store.create(COLLECTION, payload)
        except BackendUnavailableError:
            if self.outbox is None:
                raise
            job = self.outbox.hold(payload)
            logger.warning(f"Store unavailable, job held locally: id={job['id']}")
            return job

        logger.info(f"Job created: id={job['id']} status={status.value}")
        return job

    def request_pickup(self, job_data: JobCreate, host: Optional[Actor] = None) -> Document:
        """Create a job, geocoding the address when no destination was given."""
        if job_data.destination is None and self.geocoder and job_data.address and job_data.address.strip():
            resolved = self.geocoder.resolve(job_data.address.strip())
            job_data = job_data.model_copy(update={
                "address": resolved.full_address,
                "destination": resolved.coordinates,
            })
        return self.create_job(job_data, host)

    def _check_owner(self, job: Document, actor: Actor) -> None:
        if job.get("hostId") and job["hostId"] != actor.uid and not actor.is_admin:
            raise ConflictError(f"Job {job['id']} belongs to another host")

    def approve_job(self, job_id: str, host: Actor) -> Document:
        job = self.get_job(job_id)
        self._check_owner(job, host)
        if job.get("status") != JobStatus.pending_approval.value:
            raise ConflictError(f"Job {job_id} is not awaiting approval (status={job.get('status')})")
        job = self.store.write(COLLECTION, job_id, {
            "status": JobStatus.open.value,
            "approvedAt": self.clock(),
            "needsApproval": False,
        })
        logger.info(f"Job approved: id={job_id}")
        return job

    def accept_job(self, job_id: str, worker: Actor, start_location: Location) -> Document:
        """
        Assign an open job to a worker and append it to the worker's queue.

        Raises:
            ConflictError: If the job is not open or already has a worker
        """
        job = self.get_job(job_id)
        if job.get("status") != JobStatus.open.value or job.get("workerId"):
            raise ConflictError(f"Job {job_id} is no longer available (status={job.get('status')})")

        start = location_dict(start_location)
        fields = {
            "status": JobStatus.accepted.value,
            "acceptedAt": self.clock(),
            "startLocation": start,
            "workerLocation": start,
            "workerId": worker.uid,
            "progress": 0,
        }
        if worker.first_name:
            fields["workerFirstName"] = worker.first_name
        if worker.last_name:
            fields["workerLastName"] = worker.last_name
        fields.update(self.queue.assign_priority(worker.uid, job_id))

        job = self.store.write(COLLECTION, job_id, fields)
        logger.info(f"Job accepted: id={job_id} worker={worker.uid} priority={job.get('workerPriority')}")
        self.notifier.notify(job.get("hostId"), f"{worker.display_name or 'A worker'} accepted your pickup at {job.get('address')}.")
        return job

    def start_job(self, job_id: str, worker_id: Optional[str] = None) -> Document:
        """
        Move an accepted job to ``in_progress``.

        Any queued job may be started, not only the head of the queue, but a
        worker can have only one job in progress at a time.
        """
        job = self.get_job(job_id)
        if job.get("status") != JobStatus.accepted.value:
            raise ConflictError(f"Job {job_id} cannot be started (status={job.get('status')})")
        if worker_id and job.get("workerId") != worker_id:
            raise ConflictError(f"Job {job_id} is assigned to another worker")

        in_progress = self.store.query(COLLECTION, {
            "workerId": job.get("workerId"),
            "status": JobStatus.in_progress.value,
        })
        if in_progress:
            raise ConflictError(f"Worker already has job {in_progress[0]['id']} in progress")

        job = self.store.write(COLLECTION, job_id, {
            "status": JobStatus.in_progress.value,
            "startedAt": self.clock(),
        })
        logger.info(f"Job started: id={job_id} worker={job.get('workerId')}")
        return job

    def complete_job(self, job_id: str, worker_id: Optional[str] = None) -> Document:
        job = self.get_job(job_id)
        if job.get("status") != JobStatus.in_progress.value:
            raise ConflictError(f"Job {job_id} cannot be completed (status={job.get('status')})")
        if worker_id and job.get("workerId") != worker_id:
            raise ConflictError(f"Job {job_id} is assigned to another worker")

        job = self.queue.release(job["workerId"], job, {
            "status": JobStatus.completed.value,
            "completedAt": self.clock(),
            "workerLocation": None,
            "progress": 100,
            "etaMinutes": None,
        })
        logger.info(f"Job completed: id={job_id} worker={job.get('workerId')}")
        self.notifier.notify(job.get("hostId"), f"Your pickup at {job.get('address')} has been completed.")
        return job

    def cancel_job(self, job_id: str, actor: Actor, reason: Optional[str] = None) -> Document:
        """
        Hard cancel. Terminal; a queued job also leaves its worker's queue.

        Raises:
            ConflictError: If the job is another host's or already terminal
        """
        job = self.get_job(job_id)
        self._check_owner(job, actor)
        actor_id = actor.uid
        if job.get("status") in TERMINAL_JOB_STATUSES:
            raise ConflictError(f"Job {job_id} is already {job.get('status')}")

        fields = {
            "status": JobStatus.cancelled.value,
            "cancelledAt": self.clock(),
            "cancelledBy": actor_id,
            "cancellationReason": reason or "User cancelled",
        }
        worker_id = job.get("workerId")
        if worker_id and job.get("status") in ACTIVE_JOB_STATUSES:
            job = self.queue.release(worker_id, job, fields)
            if worker_id != actor_id:
                self.notifier.notify(worker_id, f"The pickup at {job.get('address')} was cancelled.")
        else:
            job = self.store.write(COLLECTION, job_id, fields)
        logger.info(f"Job cancelled: id={job_id} by={actor_id}")
        return job

    def return_job_to_queue(self, job_id: str, worker: Actor) -> Document:
        """
        Worker-initiated soft cancel: the job goes back to the open pool
        with every worker field cleared, and the worker's remaining queue
        closes the gap.
        """
        job = self.get_job(job_id)
        job = self.queue.remove_from_queue(worker.uid, job)
        logger.info(f"Job returned to pool: id={job_id} worker={worker.uid}")
        self.notifier.notify(
            job.get("hostId"),
            f"{worker.display_name or 'Worker'} removed your pickup from queue. Job is back available.",
        )
        return job

    def update_worker_location(self, job_id: str, location: Location, worker_id: Optional[str] = None) -> Document:
        job = self.get_job(job_id)
        if job.get("status") not in ACTIVE_JOB_STATUSES:
            raise ConflictError(f"Job {job_id} is not active (status={job.get('status')})")
        if worker_id and job.get("workerId") != worker_id:
            raise ConflictError(f"Job {job_id} is assigned to another worker")

        fields = {"workerLocation": location_dict(location)}
        if job.get("destination"):
            fields["progress"] = progress_percent(location, job["destination"])
            fields["etaMinutes"] = eta_minutes(distance_meters(location, job["destination"]))
        return self.store.write(COLLECTION, job_id, fields)

    def open_jobs(self) -> List[Document]:
        return [job for job in self.get_jobs(status=JobStatus.open.value) if not job.get("workerId")]

    def open_jobs_near(self, location: Optional[Location], radius_miles: float) -> RadiusPartition:
        return partition_by_radius(self.open_jobs(), location_dict(location), radius_miles)

    def worker_queue(self, worker_id: str) -> Tuple[Optional[Document], List[Document]]:
        ordered = self.queue.active_jobs(worker_id)
        return pick_current(ordered), ordered
