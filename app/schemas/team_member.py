import enum
from pydantic import EmailStr, Field
from typing import Optional, List
from app.schemas.common import CamelModel, DocumentModel


class TeamMemberRole(str, enum.Enum):
    primary_cleaner = "primary_cleaner"
    secondary_cleaner = "secondary_cleaner"
    trash_service = "trash_service"


class TeamMemberStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"


class TeamMember(DocumentModel):
    """A roster entry in the ``teamMembers`` collection."""
    id: str
    host_id: str
    # Empty until the member is linked to a registered account
    user_id: str = ""
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    role: TeamMemberRole
    status: TeamMemberStatus = TeamMemberStatus.active
    assigned_properties: List[str] = Field(default_factory=list)
    rating: float = 0
    completed_jobs: int = 0
    added_at: Optional[int] = None
    bid_id: Optional[str] = None


class TeamMemberCreate(CamelModel):
    name: str
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    role: TeamMemberRole = TeamMemberRole.primary_cleaner


class PropertyAssignmentUpdate(CamelModel):
    assigned_properties: List[str]


class ReconcileResult(CamelModel):
    member_id: str
    linked_user_id: Optional[str] = None
    assigned_job_ids: List[str] = Field(default_factory=list)
    unassigned_job_ids: List[str] = Field(default_factory=list)


class PropertyAssignmentResponse(CamelModel):
    member: TeamMember
    reconciliation: ReconcileResult
