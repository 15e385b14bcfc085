from typing import List, Optional, Tuple

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.schemas.team_member import (
    PropertyAssignmentResponse,
    TeamMember,
    TeamMemberCreate,
    TeamMemberRole,
    TeamMemberStatus,
)
from app.services.reconciler import AssignmentReconciler
from app.utils.clock import Clock, now_ms

COLLECTION = "teamMembers"


class TeamMemberService:
    """
    Service layer for a host's team roster.

    Property assignment changes are handed to the reconciler so that the
    host's cleaning jobs follow the roster.
    """

    def __init__(
        self,
        store: DocumentStore,
        reconciler: AssignmentReconciler,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.reconciler = reconciler
        self.clock = clock

    def get_team_member(self, host_id: str, member_id: str) -> TeamMember:
        """
        Get a team member of the host.

        Raises:
            NotFoundError: If the member does not exist or belongs to another host
        """
        document = self.store.get(COLLECTION, member_id)
        if not document or document.get("hostId") != host_id:
            raise NotFoundError(f"Team member {member_id} not found")
        return TeamMember.model_validate(document)

    def get_team_members(self, host_id: str) -> List[TeamMember]:
        return [TeamMember.model_validate(doc) for doc in self.store.query(COLLECTION, {"hostId": host_id})]

    def create_team_member(self, host_id: str, member_data: TeamMemberCreate) -> TeamMember:
        """
        Add a member to the host's roster, not yet linked to an account.

        A second primary cleaner added by hand is made secondary when the
        host already has an active primary.

        Raises:
            ValidationError: If the name is blank
        """
        name = member_data.name.strip() if member_data.name else ""
        if not name:
            raise ValidationError("Team member name is required")

        role = member_data.role
        if role == TeamMemberRole.primary_cleaner and any(
            member.role == TeamMemberRole.primary_cleaner and member.status == TeamMemberStatus.active
            for member in self.get_team_members(host_id)
        ):
            role = TeamMemberRole.secondary_cleaner

        fields = {
            "hostId": host_id,
            "userId": "",
            "name": name,
            "role": role.value,
            "status": TeamMemberStatus.active.value,
            "addedAt": self.clock(),
            "rating": 0,
            "completedJobs": 0,
            "assignedProperties": [],
        }
        if member_data.phone_number and member_data.phone_number.strip():
            fields["phoneNumber"] = member_data.phone_number.strip()
        if member_data.email:
            fields["email"] = str(member_data.email)

        member = TeamMember.model_validate(self.store.create(COLLECTION, fields))
        logger.info(f"Team member created: id={member.id} host={host_id} role={role.value}")
        return member

    def ensure_member_for_bid(
        self,
        host_id: str,
        cleaner_id: str,
        cleaner_name: str,
        rating: Optional[float] = None,
        completed_jobs: Optional[int] = None,
        bid_id: Optional[str] = None,
    ) -> Tuple[TeamMember, bool]:
        """
        Enroll the winning cleaner of a bid as an active primary cleaner.

        Nothing is written when a member already matches by ``userId`` or by
        exact name.

        Returns:
            (member, whether it was created)
        """
        for member in self.get_team_members(host_id):
            if member.user_id == cleaner_id or member.name == cleaner_name:
                return member, False

        fields = {
            "hostId": host_id,
            "userId": cleaner_id,
            "name": cleaner_name,
            "role": TeamMemberRole.primary_cleaner.value,
            "status": TeamMemberStatus.active.value,
            "addedAt": self.clock(),
            "rating": rating or 0,
            "completedJobs": completed_jobs or 0,
            "assignedProperties": [],
        }
        if bid_id:
            fields["bidId"] = bid_id
        member = TeamMember.model_validate(self.store.create(COLLECTION, fields))
        logger.info(f"Cleaner {cleaner_id} added to host {host_id}'s team as member {member.id}")
        return member, True

    def update_assigned_properties(
        self,
        host_id: str,
        member_id: str,
        property_ids: List[str],
    ) -> PropertyAssignmentResponse:
        """
        Replace the member's property set and reconcile cleaning jobs.

        Raises:
            NotFoundError: If the member does not exist
            ValidationError: If a property ID does not belong to the host
        """
        member = self.get_team_member(host_id, member_id)
        if member.role == TeamMemberRole.trash_service:
            raise ValidationError("Trash service members don't take property assignments")

        unknown = [
            pid for pid in property_ids
            if (self.store.get("properties", pid) or {}).get("hostId") != host_id
        ]
        if unknown:
            raise ValidationError(f"Unknown properties: {', '.join(unknown)}")

        previous = list(member.assigned_properties)
        # Keep caller order, drop duplicates
        updated = list(dict.fromkeys(property_ids))
        self.store.write(COLLECTION, member_id, {"assignedProperties": updated})

        result = self.reconciler.reconcile(host_id, member, previous, updated)
        member = self.get_team_member(host_id, member_id)
        return PropertyAssignmentResponse(member=member, reconciliation=result)

    def delete_team_member(self, host_id: str, member_id: str) -> List[str]:
        """
        Unassign the member from every open job of the host, then delete it.

        Returns:
            IDs of the jobs that were unassigned
        """
        member = self.get_team_member(host_id, member_id)
        unassigned = self.reconciler.unassign_member(host_id, member)
        self.store.delete(COLLECTION, member_id)
        logger.info(f"Team member deleted: id={member_id} host={host_id}")
        return unassigned
