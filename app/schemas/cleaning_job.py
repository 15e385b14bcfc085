import enum
from pydantic import Field
from typing import Optional, List
from app.schemas.common import CamelModel, DocumentModel, Location
from app.schemas.team_member import TeamMember


class CleaningJobStatus(str, enum.Enum):
    open = "open"
    bidding = "bidding"
    assigned = "assigned"
    accepted = "accepted"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


ACTIVE_CLEANING_STATUSES = (CleaningJobStatus.accepted.value, CleaningJobStatus.in_progress.value)
TERMINAL_CLEANING_STATUSES = (CleaningJobStatus.completed.value, CleaningJobStatus.cancelled.value)


class CleaningType(str, enum.Enum):
    standard = "standard"
    deep = "deep"
    emergency = "emergency"
    checkout = "checkout"


class BidStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class CleaningBid(DocumentModel):
    id: str
    cleaner_id: str
    cleaner_name: str
    amount: float
    estimated_time: Optional[float] = None  # hours
    message: Optional[str] = None
    rating: Optional[float] = None
    completed_jobs: Optional[int] = None
    # Absent status means the bid is still pending
    status: Optional[BidStatus] = None
    created_at: Optional[int] = None


class CleaningJob(DocumentModel):
    """A cleaning job as stored in the ``cleaningJobs`` collection."""
    id: str
    status: CleaningJobStatus
    address: str
    host_id: Optional[str] = None
    destination: Optional[Location] = None
    notes: Optional[str] = None
    cleaning_type: Optional[CleaningType] = None

    bids: List[CleaningBid] = Field(default_factory=list)

    assigned_cleaner_id: Optional[str] = None
    assigned_cleaner_name: Optional[str] = None
    assigned_team_member_id: Optional[str] = None
    assigned_at: Optional[int] = None

    accepted_bid_id: Optional[str] = None
    accepted_bid_amount: Optional[float] = None
    accepted_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    cleaner_priority: Optional[int] = None
    estimated_start_time: Optional[int] = None

    # Calendar-feed fields; present only on externally sourced jobs
    preferred_date: Optional[int] = None
    preferred_time: Optional[str] = None
    check_in_date: Optional[str] = None
    check_out_date: Optional[str] = None
    guest_name: Optional[str] = None
    created_at: Optional[int] = None

    @property
    def is_external(self) -> bool:
        return bool(self.check_in_date or self.check_out_date or self.guest_name)


class CleaningJobCreate(CamelModel):
    address: str
    destination: Optional[Location] = None
    notes: Optional[str] = None
    cleaning_type: CleaningType = CleaningType.standard
    preferred_date: Optional[int] = None
    preferred_time: Optional[str] = None
    check_in_date: Optional[str] = None
    check_out_date: Optional[str] = None
    guest_name: Optional[str] = None


class BidCreate(CamelModel):
    amount: float = Field(..., gt=0)
    estimated_time: Optional[float] = Field(None, gt=0)
    message: Optional[str] = None


class CleaningAssign(CamelModel):
    cleaner_id: str
    cleaner_name: str


class BidAcceptResponse(CamelModel):
    job: CleaningJob
    team_member: TeamMember
