"""
Per-owner priority queues over active jobs.

A worker (trash pickups) or a cleaner (cleaning jobs) holds a gapless,
1-based ordering over their jobs whose status is accepted or in progress.
New jobs go to the back; releasing a job shifts every later job up by one
and recomputes its estimated start time.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from app.core.config import settings
from app.core.exceptions import ConflictError
from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.crud.subscriptions import Document, Subscription
from app.utils.clock import Clock, MINUTE_MS, now_ms


@dataclass(frozen=True)
class QueueConfig:
    collection: str
    owner_field: str
    priority_field: str
    unit_ms: int
    active_statuses: tuple = ("accepted", "in_progress")
    # Fields written when a job leaves the queue and goes back to the pool
    release_fields: Dict[str, Any] = field(default_factory=dict)


def trash_queue_config(unit_minutes: Optional[int] = None) -> QueueConfig:
    minutes = unit_minutes if unit_minutes is not None else settings.TRASH_QUEUE_UNIT_MINUTES
    return QueueConfig(
        collection="jobs",
        owner_field="workerId",
        priority_field="workerPriority",
        unit_ms=minutes * MINUTE_MS,
        release_fields={
            "status": "open",
            "workerId": None,
            "workerFirstName": None,
            "workerLastName": None,
            "workerLocation": None,
            "startLocation": None,
            "acceptedAt": None,
            "startedAt": None,
            "workerPriority": None,
            "estimatedStartTime": None,
            "progress": 0,
            "etaMinutes": None,
        },
    )


def cleaning_queue_config(unit_minutes: Optional[int] = None) -> QueueConfig:
    # Cleaning slots default to an hour, trash pickup slots to 15 minutes
    minutes = unit_minutes if unit_minutes is not None else settings.CLEANING_QUEUE_UNIT_MINUTES
    return QueueConfig(
        collection="cleaningJobs",
        owner_field="assignedCleanerId",
        priority_field="cleanerPriority",
        unit_ms=minutes * MINUTE_MS,
        release_fields={
            "status": "open",
            "assignedCleanerId": None,
            "assignedCleanerName": None,
            "assignedTeamMemberId": None,
            "acceptedAt": None,
            "startedAt": None,
            "cleanerPriority": None,
            "estimatedStartTime": None,
        },
    )


def order_queue(jobs: List[Document], priority_field: str) -> List[Document]:
    """Active jobs by priority ascending; jobs without a priority sort last."""
    return sorted(jobs, key=lambda job: job.get(priority_field) or float("inf"))


def pick_current(ordered: List[Document]) -> Optional[Document]:
    """The in-progress job if there is one, else the head of the queue."""
    for job in ordered:
        if job.get("status") == "in_progress":
            return job
    return ordered[0] if ordered else None


class QueueManager:
    """
    Maintains priority and estimated start time for one queue domain.

    Args:
        store: Document store handle
        config: Which collection/fields form the queue
        clock: Epoch-millisecond clock
    """

    def __init__(self, store: DocumentStore, config: QueueConfig, clock: Clock = now_ms):
        self.store = store
        self.config = config
        self.clock = clock

    def active_jobs(self, owner_id: str) -> List[Document]:
        jobs = self.store.query(self.config.collection, {
            self.config.owner_field: owner_id,
            "status": list(self.config.active_statuses),
        })
        return order_queue(jobs, self.config.priority_field)

    def current_job(self, owner_id: str) -> Optional[Document]:
        return pick_current(self.active_jobs(owner_id))

    def next_jobs(self, owner_id: str) -> List[Document]:
        ordered = self.active_jobs(owner_id)
        current = pick_current(ordered)
        return [job for job in ordered if current is None or job["id"] != current["id"]]

    def estimated_start(self, priority: int) -> int:
        return self.clock() + (priority - 1) * self.config.unit_ms

    def assign_priority(self, owner_id: str, job_id: str) -> Dict[str, Any]:
        """
        Fields that place ``job_id`` at the back of the owner's queue.

        The caller writes them together with its own status change.
        """
        ahead = [job for job in self.active_jobs(owner_id) if job["id"] != job_id]
        priority = len(ahead) + 1
        logger.info(f"Queue {self.config.collection}: owner={owner_id} job={job_id} priority={priority}")
        return {
            self.config.priority_field: priority,
            "estimatedStartTime": self.estimated_start(priority),
        }

    def renumber_updates(
        self,
        owner_id: str,
        removed_priority: Optional[int],
        exclude_id: Optional[str] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Shift every job behind ``removed_priority`` up by one."""
        if not removed_priority:
            return {}
        updates = {}
        for job in self.active_jobs(owner_id):
            if job["id"] == exclude_id:
                continue
            priority = job.get(self.config.priority_field)
            if priority and priority > removed_priority:
                updates[job["id"]] = {
                    self.config.priority_field: priority - 1,
                    "estimatedStartTime": self.estimated_start(priority - 1),
                }
        return updates

    def compact_updates(self, owner_id: str, leaving_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Renumber 1..n the owner's jobs that stay once ``leaving_ids`` are gone."""
        leaving = set(leaving_ids)
        staying = [job for job in self.active_jobs(owner_id) if job["id"] not in leaving]
        updates = {}
        for priority, job in enumerate(staying, start=1):
            if job.get(self.config.priority_field) != priority:
                updates[job["id"]] = {
                    self.config.priority_field: priority,
                    "estimatedStartTime": self.estimated_start(priority),
                }
        return updates

    def renumber(self, owner_id: str, removed_priority: Optional[int]) -> List[Document]:
        updates = self.renumber_updates(owner_id, removed_priority)
        if not updates:
            return []
        return self.store.write_many(self.config.collection, updates)

    def release(self, owner_id: str, job: Document, fields: Dict[str, Any]) -> Document:
        """
        Take ``job`` out of the owner's queue.

        ``fields`` (the job's own transition) and the renumbering of the
        jobs behind it go out as one batch, so subscribers see a single
        snapshot without a gap or a duplicate.
        """
        removed_priority = job.get(self.config.priority_field)
        batch = {job["id"]: {
            **fields,
            self.config.priority_field: None,
            "estimatedStartTime": None,
        }}
        batch.update(self.renumber_updates(owner_id, removed_priority, exclude_id=job["id"]))
        written = self.store.write_many(self.config.collection, batch)
        logger.info(
            f"Queue {self.config.collection}: released job={job['id']} owner={owner_id} "
            f"priority={removed_priority} renumbered={len(batch) - 1}"
        )
        return written[0]

    def remove_from_queue(self, owner_id: str, job: Document) -> Document:
        """Return ``job`` to the open pool and close the gap it leaves."""
        if job.get(self.config.owner_field) != owner_id:
            raise ConflictError(f"Job {job['id']} is not in this queue")
        if job.get("status") not in self.config.active_statuses:
            raise ConflictError(f"Job {job['id']} is not active (status={job.get('status')})")
        return self.release(owner_id, job, dict(self.config.release_fields))


class QueueView:
    """
    Live view of one owner's queue.

    Subscribes to the owner's active jobs and recomputes ``current`` and
    ``queue`` from every snapshot the store pushes.
    """

    def __init__(self, store: DocumentStore, config: QueueConfig, owner_id: str):
        self.config = config
        self.owner_id = owner_id
        self.current: Optional[Document] = None
        self.queue: List[Document] = []
        self.subscription: Subscription = store.subscribe(
            config.collection,
            {config.owner_field: owner_id, "status": list(config.active_statuses)},
            callback=self._recompute,
        )

    def _recompute(self, snapshot: List[Document]) -> None:
        self.queue = order_queue(snapshot, self.config.priority_field)
        self.current = pick_current(self.queue)

    @property
    def priorities(self) -> List[Optional[int]]:
        return [job.get(self.config.priority_field) for job in self.queue]

    def close(self) -> None:
        self.subscription.close()
