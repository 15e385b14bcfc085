"""
Keeps cleaning-job assignment fields in line with a team member's
assigned properties.

Jobs are matched to properties by normalized address string, not by
coordinates: two spellings of the same street will not match.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.crud.subscriptions import Document
from app.schemas.cleaning_job import ACTIVE_CLEANING_STATUSES, TERMINAL_CLEANING_STATUSES, CleaningJobStatus
from app.schemas.team_member import ReconcileResult, TeamMember, TeamMemberRole
from app.schemas.user import UserProfile
from app.services.worker_queue import QueueManager
from app.utils.clock import Clock, now_ms

JOBS = "cleaningJobs"

UNASSIGN_FIELDS = {
    "assignedCleanerId": None,
    "assignedCleanerName": None,
    "assignedTeamMemberId": None,
    # legacy assignment fields written by older clients
    "cleanerId": None,
    "cleanerName": None,
    "cleanerPriority": None,
    "estimatedStartTime": None,
    "status": CleaningJobStatus.open.value,
}


class AddressMatcher:
    """Lowercases and collapses whitespace before comparing."""

    def normalize(self, address: Optional[str]) -> str:
        return " ".join((address or "").lower().split())

    def matches(self, a: Optional[str], b: Optional[str]) -> bool:
        normalized = self.normalize(a)
        return bool(normalized) and normalized == self.normalize(b)


class AssignmentReconciler:
    """
    Args:
        store: Document store handle
        matcher: Address matcher; defaults to whitespace/case normalization
        cleaning_queue: When given, cleaners' queues are renumbered after
            active jobs are taken away from them, and an active job handed
            to a registered member joins the back of that member's queue
        clock: Epoch-millisecond clock
    """

    def __init__(
        self,
        store: DocumentStore,
        matcher: Optional[AddressMatcher] = None,
        cleaning_queue: Optional[QueueManager] = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.matcher = matcher or AddressMatcher()
        self.cleaning_queue = cleaning_queue
        self.clock = clock

    def resolve_account(self, member: TeamMember) -> Tuple[Optional[str], str, bool]:
        """
        Find the registered account behind a team member.

        A member without ``userId`` but with an email is looked up by email
        and, when found, linked permanently by writing ``userId`` back.

        Returns:
            (user_id or None, display name, whether a link was written)
        """
        user_id = member.user_id or None
        name = member.name
        linked = False

        if not user_id and member.email:
            users = self.store.query("users", {"email": member.email})
            if users:
                user_id = users[0]["id"]
                self.store.write("teamMembers", member.id, {"userId": user_id})
                linked = True
                logger.info(f"Linked team member {member.id} to user account {user_id}")

        if user_id:
            profile = self.store.get("users", user_id)
            if profile:
                full_name = UserProfile.model_validate(profile).full_name
                if full_name and full_name != "null null":
                    name = full_name

        return user_id, name, linked

    def _property_addresses(self, host_id: str, property_ids: Iterable[str]) -> List[str]:
        addresses = []
        for property_id in property_ids:
            prop = self.store.get("properties", property_id)
            if not prop or prop.get("hostId") != host_id:
                logger.warning(f"Skipping unknown property {property_id} for host {host_id}")
                continue
            addresses.append(prop.get("address"))
        return addresses

    def _host_open_jobs(self, host_id: str) -> List[Document]:
        return [
            job for job in self.store.query(JOBS, {"hostId": host_id})
            if job.get("status") not in TERMINAL_CLEANING_STATUSES
        ]

    def _address_in(self, job: Document, addresses: List[str]) -> bool:
        return any(self.matcher.matches(address, job.get("address")) for address in addresses)

    def _points_to(self, job: Document, member: TeamMember, user_id: Optional[str]) -> bool:
        return (
            job.get("assignedTeamMemberId") == member.id
            or (user_id is not None and job.get("assignedCleanerId") == user_id)
            or job.get("assignedCleanerName") == member.name
            or (user_id is not None and job.get("cleanerId") == user_id)
            or job.get("cleanerName") == member.name
        )

    def _unassign(self, jobs: List[Document]) -> List[str]:
        if not jobs:
            return []
        self.store.write_many(JOBS, {job["id"]: dict(UNASSIGN_FIELDS) for job in jobs})

        if self.cleaning_queue is not None:
            # Highest first so each renumber sees a contiguous tail
            released = [
                job for job in jobs
                if job.get("status") in ACTIVE_CLEANING_STATUSES
                and job.get("assignedCleanerId") and job.get("cleanerPriority")
            ]
            for job in sorted(released, key=lambda j: j["cleanerPriority"], reverse=True):
                self.cleaning_queue.renumber(job["assignedCleanerId"], job["cleanerPriority"])

        return [job["id"] for job in jobs]

    def _assign(
        self,
        jobs: List[Document],
        member: TeamMember,
        user_id: Optional[str],
        name: str,
    ) -> List[str]:
        updates: Dict[str, Dict] = {}
        taken_from: Dict[str, List[str]] = {}
        next_priority: Optional[int] = None

        for job in jobs:
            status = job.get("status")
            target = {
                "assignedTeamMemberId": member.id,
                "assignedCleanerName": name,
                # Only real account IDs go here, never a team member ID
                "assignedCleanerId": user_id,
                "status": CleaningJobStatus.assigned.value if status == CleaningJobStatus.open.value else status,
            }
            if all(job.get(key) == value for key, value in target.items()):
                continue
            fields = {**target, "assignedAt": self.clock()}

            previous_owner = job.get("assignedCleanerId")
            if status in ACTIVE_CLEANING_STATUSES and previous_owner != user_id:
                # The job changes queue: leave the old owner's, join the back of the new one
                if previous_owner:
                    taken_from.setdefault(previous_owner, []).append(job["id"])
                if user_id and self.cleaning_queue is not None:
                    if next_priority is None:
                        next_priority = len(self.cleaning_queue.active_jobs(user_id)) + 1
                    fields["cleanerPriority"] = next_priority
                    fields["estimatedStartTime"] = self.cleaning_queue.estimated_start(next_priority)
                    next_priority += 1
                else:
                    fields["cleanerPriority"] = None
                    fields["estimatedStartTime"] = None
            updates[job["id"]] = fields

        assigned = list(updates)
        if self.cleaning_queue is not None:
            for owner_id, job_ids in taken_from.items():
                for job_id, fields in self.cleaning_queue.compact_updates(owner_id, job_ids).items():
                    updates.setdefault(job_id, {}).update(fields)

        if updates:
            self.store.write_many(JOBS, updates)
        if taken_from:
            logger.info(f"Moved active jobs to member {member.id} from cleaners {sorted(taken_from)}")
        return assigned

    def reconcile(
        self,
        host_id: str,
        member: TeamMember,
        previous: Iterable[str],
        updated: Iterable[str],
    ) -> ReconcileResult:
        """
        Apply a change of ``member.assigned_properties`` from ``previous`` to
        ``updated`` to the host's cleaning jobs.

        Only primary cleaners are auto-(un)assigned. Jobs already in the
        target state are not rewritten, so a repeated run changes nothing.
        """
        previous, updated = set(previous), set(updated)
        removed = previous - updated
        added = updated - previous

        user_id, name, linked = self.resolve_account(member)
        result = ReconcileResult(member_id=member.id, linked_user_id=user_id if linked else None)

        if member.role != TeamMemberRole.primary_cleaner:
            logger.info(f"Reconcile skipped for {member.id}: role={member.role.value}")
            return result

        jobs = self._host_open_jobs(host_id)

        if removed:
            addresses = self._property_addresses(host_id, removed)
            stale = [
                job for job in jobs
                if self._address_in(job, addresses) and self._points_to(job, member, user_id)
            ]
            result.unassigned_job_ids = self._unassign(stale)
            jobs = [job for job in jobs if job["id"] not in result.unassigned_job_ids]

        if added:
            addresses = self._property_addresses(host_id, added)
            matching = [job for job in jobs if self._address_in(job, addresses)]
            result.assigned_job_ids = self._assign(matching, member, user_id, name)

        logger.info(
            f"Reconciled member {member.id}: added={sorted(added)} removed={sorted(removed)} "
            f"assigned={len(result.assigned_job_ids)} unassigned={len(result.unassigned_job_ids)}"
        )
        return result

    def unassign_member(self, host_id: str, member: TeamMember) -> List[str]:
        """Clear every non-terminal job of the host that points to ``member``."""
        user_id = member.user_id or None
        if not user_id and member.email:
            users = self.store.query("users", {"email": member.email})
            if users:
                user_id = users[0]["id"]
        stale = [job for job in self._host_open_jobs(host_id) if self._points_to(job, member, user_id)]
        unassigned = self._unassign(stale)
        logger.info(f"Unassigned member {member.id} from {len(unassigned)} job(s)")
        return unassigned
