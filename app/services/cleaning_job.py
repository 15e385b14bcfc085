import uuid
from typing import List, Optional

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.crud.subscriptions import Document
from app.schemas.cleaning_job import (
    ACTIVE_CLEANING_STATUSES,
    TERMINAL_CLEANING_STATUSES,
    BidCreate,
    BidStatus,
    CleaningJobCreate,
    CleaningJobStatus,
)
from app.schemas.common import location_dict
from app.schemas.team_member import TeamMember
from app.schemas.user import Actor
from app.services.geocoding import GeocodingService
from app.services.notifications import NotificationSink
from app.services.team_member import TeamMemberService
from app.services.worker_queue import QueueManager
from app.utils.clock import Clock, now_ms

COLLECTION = "cleaningJobs"

BIDDABLE_STATUSES = (CleaningJobStatus.open.value, CleaningJobStatus.bidding.value)
STARTABLE_STATUSES = (CleaningJobStatus.accepted.value, CleaningJobStatus.assigned.value)


class CleaningJobService:
    """
    Cleaning jobs and the bidding protocol.

    ``open -> bidding`` on the first bid, ``bidding -> accepted`` when the
    host takes one bid (every other bid is rejected in the same write),
    then ``in_progress -> completed``. Jobs assigned directly or by the
    reconciler enter at ``assigned``.

    Args:
        store: Document store handle
        queue: Cleaner queue manager (cleaning domain)
        team: Roster service used to enroll winning cleaners
        notifier: Notification sink
        geocoder: Resolves addresses posted without coordinates
        clock: Epoch-millisecond clock
    """

    def __init__(
        self,
        store: DocumentStore,
        queue: QueueManager,
        team: TeamMemberService,
        notifier: NotificationSink,
        geocoder: Optional[GeocodingService] = None,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.queue = queue
        self.team = team
        self.notifier = notifier
        self.geocoder = geocoder
        self.clock = clock

    def get_cleaning_job(self, job_id: str) -> Document:
        job = self.store.get(COLLECTION, job_id)
        if not job:
            raise NotFoundError(f"Cleaning job {job_id} not found")
        return job

    def get_cleaning_jobs_for(self, actor: Actor) -> List[Document]:
        """
        Hosts see their own jobs; cleaners see jobs assigned to them plus
        every job still open for bids.
        """
        jobs = self.store.query(COLLECTION)
        if actor.role and actor.role.value == "cleaner":
            visible = [
                job for job in jobs
                if job.get("assignedCleanerId") == actor.uid
                or actor.uid in (job.get("teamCleaners") or [])
                or job.get("status") in BIDDABLE_STATUSES
            ]
        else:
            visible = [job for job in jobs if job.get("hostId") == actor.uid]
        return sorted(visible, key=lambda job: job.get("preferredDate") or job.get("createdAt") or 0, reverse=True)

    def create_cleaning_job(self, job_data: CleaningJobCreate, host: Actor) -> Document:
        """
        Post a cleaning job, open for bids.

        Raises:
            ValidationError: If the address is missing
        """
        if not job_data.address or not job_data.address.strip():
            raise ValidationError("Address is required")

        address = job_data.address.strip()
        destination = job_data.destination
        if destination is None and self.geocoder:
            resolved = self.geocoder.resolve(address)
            address, destination = resolved.full_address, resolved.coordinates

        payload = {
            "hostId": host.uid,
            "address": address,
            "destination": location_dict(destination),
            "status": CleaningJobStatus.open.value,
            "cleaningType": job_data.cleaning_type.value,
            "bids": [],
            "createdAt": self.clock(),
        }
        optional = {
            "hostFirstName": host.first_name,
            "hostLastName": host.last_name,
            "notes": job_data.notes.strip() if job_data.notes else None,
            "preferredDate": job_data.preferred_date,
            "preferredTime": job_data.preferred_time,
            "checkInDate": job_data.check_in_date,
            "checkOutDate": job_data.check_out_date,
            "guestName": job_data.guest_name,
        }
        payload.update({k: v for k, v in optional.items() if v})

        job = self.store.create(COLLECTION, payload)
        logger.info(f"Cleaning job created: id={job['id']} host={host.uid}")
        return job

    def place_bid(self, job_id: str, cleaner: Actor, bid_data: BidCreate) -> Document:
        """
        Append a pending bid; the first bid moves the job to ``bidding``.

        A cleaner may bid more than once on the same job.

        Raises:
            ConflictError: If the job is no longer taking bids
        """
        job = self.get_cleaning_job(job_id)
        if job.get("status") not in BIDDABLE_STATUSES:
            raise ConflictError(f"Cleaning job {job_id} is not accepting bids (status={job.get('status')})")

        profile = self.store.get("users", cleaner.uid) or {}
        bid = {
            "id": uuid.uuid4().hex,
            "cleanerId": cleaner.uid,
            "cleanerName": cleaner.display_name or "Cleaner",
            "amount": bid_data.amount,
            "estimatedTime": bid_data.estimated_time,
            "message": bid_data.message,
            "rating": profile.get("rating", 0),
            "completedJobs": profile.get("completedJobs", 0),
            "createdAt": self.clock(),
        }
        job = self.store.write(COLLECTION, job_id, {
            "bids": list(job.get("bids") or []) + [bid],
            "status": CleaningJobStatus.bidding.value,
        })
        logger.info(f"Bid placed: job={job_id} cleaner={cleaner.uid} amount={bid_data.amount}")
        self.notifier.notify(job.get("hostId"), f"{bid['cleanerName']} bid ${bid_data.amount:g} on your cleaning at {job.get('address')}.")
        return job

    def accept_bid(self, job_id: str, bid_id: str, host: Actor) -> tuple[Document, TeamMember]:
        """
        Accept one bid and reject the rest.

        The bid statuses, the job's move to ``accepted``, the cleaner's
        assignment and queue position go out in a single write. The cleaner
        is then enrolled in the host's team unless already a member.

        Raises:
            NotFoundError: If the job or bid does not exist
            ConflictError: If the job is not the host's or a bid was already accepted
        """
        job = self.get_cleaning_job(job_id)
        if job.get("hostId") and job.get("hostId") != host.uid:
            raise ConflictError(f"Cleaning job {job_id} belongs to another host")
        if job.get("status") not in BIDDABLE_STATUSES:
            raise ConflictError(f"Cleaning job {job_id} is not accepting bids (status={job.get('status')})")

        bids = list(job.get("bids") or [])
        winner = next((bid for bid in bids if bid.get("id") == bid_id), None)
        if winner is None:
            raise NotFoundError(f"Bid {bid_id} not found on cleaning job {job_id}")

        updated_bids = [
            {**bid, "status": (BidStatus.accepted if bid.get("id") == bid_id else BidStatus.rejected).value}
            for bid in bids
        ]
        cleaner_id = winner["cleanerId"]
        fields = {
            "status": CleaningJobStatus.accepted.value,
            "bids": updated_bids,
            "assignedCleanerId": cleaner_id,
            "assignedCleanerName": winner.get("cleanerName"),
            "acceptedBidId": bid_id,
            "acceptedBidAmount": winner.get("amount"),
            "acceptedAt": self.clock(),
        }
        fields.update(self.queue.assign_priority(cleaner_id, job_id))
        job = self.store.write(COLLECTION, job_id, fields)
        logger.info(f"Bid accepted: job={job_id} bid={bid_id} cleaner={cleaner_id} priority={job.get('cleanerPriority')}")

        member, created = self.team.ensure_member_for_bid(
            host.uid,
            cleaner_id,
            winner.get("cleanerName"),
            rating=winner.get("rating"),
            completed_jobs=winner.get("completedJobs"),
            bid_id=bid_id,
        )
        if created:
            job = self.store.write(COLLECTION, job_id, {"assignedTeamMemberId": member.id})

        self.notifier.notify(cleaner_id, f"Your bid of ${winner.get('amount'):g} for {job.get('address')} was accepted!")
        return job, member

    def assign_cleaning_job(self, job_id: str, cleaner_id: str, cleaner_name: str) -> Document:
        job = self.get_cleaning_job(job_id)
        if job.get("status") not in BIDDABLE_STATUSES + (CleaningJobStatus.assigned.value,):
            raise ConflictError(f"Cleaning job {job_id} cannot be assigned (status={job.get('status')})")

        job = self.store.write(COLLECTION, job_id, {
            "assignedCleanerId": cleaner_id,
            "assignedCleanerName": cleaner_name,
            "status": CleaningJobStatus.assigned.value,
            "assignedAt": self.clock(),
        })
        logger.info(f"Cleaning job assigned: id={job_id} cleaner={cleaner_id}")
        self.notifier.notify(cleaner_id, f"You have been assigned a cleaning at {job.get('address')}.")
        return job

    def start_cleaning_job(self, job_id: str, cleaner_id: Optional[str] = None) -> Document:
        job = self.get_cleaning_job(job_id)
        if job.get("status") not in STARTABLE_STATUSES:
            raise ConflictError(f"Cleaning job {job_id} cannot be started (status={job.get('status')})")
        owner = job.get("assignedCleanerId")
        if cleaner_id and owner != cleaner_id:
            raise ConflictError(f"Cleaning job {job_id} is assigned to another cleaner")

        fields = {"status": CleaningJobStatus.in_progress.value, "startedAt": self.clock()}
        if owner:
            in_progress = self.store.query(COLLECTION, {
                "assignedCleanerId": owner,
                "status": CleaningJobStatus.in_progress.value,
            })
            if in_progress:
                raise ConflictError(f"Cleaner already has job {in_progress[0]['id']} in progress")
            # Directly assigned jobs join the queue only once work starts
            if not job.get("cleanerPriority"):
                fields.update(self.queue.assign_priority(owner, job_id))

        job = self.store.write(COLLECTION, job_id, fields)
        logger.info(f"Cleaning job started: id={job_id} cleaner={owner}")
        return job

    def complete_cleaning_job(self, job_id: str, cleaner_id: Optional[str] = None) -> Document:
        job = self.get_cleaning_job(job_id)
        if job.get("status") != CleaningJobStatus.in_progress.value:
            raise ConflictError(f"Cleaning job {job_id} cannot be completed (status={job.get('status')})")
        owner = job.get("assignedCleanerId")
        if cleaner_id and owner != cleaner_id:
            raise ConflictError(f"Cleaning job {job_id} is assigned to another cleaner")

        fields = {"status": CleaningJobStatus.completed.value, "completedAt": self.clock()}
        if owner:
            job = self.queue.release(owner, job, fields)
        else:
            job = self.store.write(COLLECTION, job_id, fields)
        logger.info(f"Cleaning job completed: id={job_id} cleaner={owner}")
        self.notifier.notify(job.get("hostId"), f"The cleaning at {job.get('address')} has been completed.")
        return job

    def cancel_cleaning_job(self, job_id: str, actor: Actor, reason: Optional[str] = None) -> Document:
        job = self.get_cleaning_job(job_id)
        if job.get("hostId") and job["hostId"] != actor.uid and not actor.is_admin:
            raise ConflictError(f"Cleaning job {job_id} belongs to another host")
        actor_id = actor.uid
        if job.get("status") in TERMINAL_CLEANING_STATUSES:
            raise ConflictError(f"Cleaning job {job_id} is already {job.get('status')}")

        fields = {
            "status": CleaningJobStatus.cancelled.value,
            "cancelledAt": self.clock(),
            "cancelledBy": actor_id,
            "cancellationReason": reason or "User cancelled",
        }
        owner = job.get("assignedCleanerId")
        if owner and job.get("status") in ACTIVE_CLEANING_STATUSES:
            job = self.queue.release(owner, job, fields)
        else:
            job = self.store.write(COLLECTION, job_id, fields)
        logger.info(f"Cleaning job cancelled: id={job_id} by={actor_id}")
        return job
