import enum
from pydantic import Field
from typing import Optional, List, Union
from app.schemas.common import CamelModel, DocumentModel, Location


class JobStatus(str, enum.Enum):
    open = "open"
    pending_approval = "pending_approval"
    accepted = "accepted"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


# Statuses that hold a slot in a worker's queue
ACTIVE_JOB_STATUSES = (JobStatus.accepted.value, JobStatus.in_progress.value)
TERMINAL_JOB_STATUSES = (JobStatus.completed.value, JobStatus.cancelled.value)


class RecurrenceFrequency(str, enum.Enum):
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"


class RecurringSchedule(DocumentModel):
    frequency: RecurrenceFrequency = RecurrenceFrequency.weekly
    days_of_week: List[int] = Field(default_factory=list)  # 0 = Sunday
    start_date: Optional[int] = None
    end_date: Optional[int] = None
    active: bool = True


class Job(DocumentModel):
    """A trash pickup job as stored in the ``jobs`` collection."""
    id: str
    status: JobStatus
    address: str
    destination: Optional[Location] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None

    host_id: Optional[str] = None
    host_first_name: Optional[str] = None
    host_last_name: Optional[str] = None
    worker_id: Optional[str] = None
    worker_first_name: Optional[str] = None
    worker_last_name: Optional[str] = None

    created_at: Optional[int] = None
    approved_at: Optional[int] = None
    accepted_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    start_location: Optional[Location] = None
    worker_location: Optional[Location] = None
    progress: Optional[float] = 0
    # Whole minutes, or "arriving" when under a minute out
    eta_minutes: Optional[Union[int, str]] = None

    worker_priority: Optional[int] = None
    estimated_start_time: Optional[int] = None

    is_recurring: bool = False
    recurring_schedule: Optional[RecurringSchedule] = None
    needs_approval: bool = False


class JobCreate(CamelModel):
    address: str
    destination: Optional[Location] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None
    needs_approval: bool = False
    is_recurring: bool = False
    recurring_schedule: Optional[RecurringSchedule] = None


class JobAccept(CamelModel):
    start_location: Location


class JobCancel(CamelModel):
    reason: Optional[str] = None


class WorkerLocationUpdate(CamelModel):
    location: Location


class OpenJobsResponse(CamelModel):
    radius_miles: float
    in_range: List[Job]
    out_of_range: List[Job]


class WorkerQueueResponse(CamelModel):
    current: Optional[Job] = None
    queue: List[Job]
