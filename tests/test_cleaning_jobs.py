import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.schemas.cleaning_job import BidCreate, CleaningJobCreate
from app.schemas.team_member import TeamMemberCreate, TeamMemberRole
from app.schemas.user import Actor, UserRole
from app.utils.clock import MINUTE_MS
from tests.conftest import NOW

OAK = {"lat": 39.78, "lng": -89.65}


@pytest.fixture
def cleaner_y():
    return Actor(uid="cleaner-2", role=UserRole.cleaner, first_name="Yuki", last_name="Young")


def _post(cleaning_service, host, address="456 Oak Ave"):
    return cleaning_service.create_cleaning_job(CleaningJobCreate(address=address, destination=OAK), host)


def _bid(cleaning_service, job_id, cleaner, amount, hours):
    job = cleaning_service.place_bid(job_id, cleaner, BidCreate(amount=amount, estimated_time=hours))
    return job["bids"][-1]["id"]


class TestBidding:
    def test_posted_job_is_open_with_no_bids(self, cleaning_service, host):
        job = _post(cleaning_service, host)

        assert job["status"] == "open"
        assert job["bids"] == []
        assert job["cleaningType"] == "standard"
        assert job["hostId"] == host.uid

    def test_address_is_required(self, cleaning_service, host):
        with pytest.raises(ValidationError):
            cleaning_service.create_cleaning_job(CleaningJobCreate(address=" "), host)

    def test_first_bid_moves_job_to_bidding(self, cleaning_service, store, host, cleaner):
        store.write("users", cleaner.uid, {"rating": 4.8, "completedJobs": 12})
        job = _post(cleaning_service, host)

        job = cleaning_service.place_bid(job["id"], cleaner, BidCreate(amount=100, estimated_time=3))

        assert job["status"] == "bidding"
        (bid,) = job["bids"]
        assert bid["cleanerId"] == cleaner.uid
        assert bid["cleanerName"] == "Cara Clean"
        assert bid["rating"] == 4.8
        assert bid["completedJobs"] == 12
        assert bid.get("status") is None

    def test_same_cleaner_may_bid_twice(self, cleaning_service, host, cleaner):
        job = _post(cleaning_service, host)
        _bid(cleaning_service, job["id"], cleaner, 100, 3)
        _bid(cleaning_service, job["id"], cleaner, 95, 3)

        assert len(cleaning_service.get_cleaning_job(job["id"])["bids"]) == 2

    def test_accepting_one_bid_rejects_the_rest(self, cleaning_service, team_service, host, cleaner, cleaner_y, notifier):
        job = _post(cleaning_service, host)
        bid_x = _bid(cleaning_service, job["id"], cleaner, 100, 3)
        bid_y = _bid(cleaning_service, job["id"], cleaner_y, 90, 4)

        accepted, member = cleaning_service.accept_bid(job["id"], bid_y, host)

        assert accepted["status"] == "accepted"
        statuses = {bid["id"]: bid["status"] for bid in accepted["bids"]}
        assert statuses == {bid_x: "rejected", bid_y: "accepted"}
        assert accepted["assignedCleanerId"] == cleaner_y.uid
        assert accepted["assignedCleanerName"] == "Yuki Young"
        assert accepted["acceptedBidId"] == bid_y
        assert accepted["acceptedBidAmount"] == 90
        assert accepted["cleanerPriority"] == 1
        assert accepted["assignedTeamMemberId"] == member.id

        assert member.user_id == cleaner_y.uid
        assert member.role == TeamMemberRole.primary_cleaner
        assert member.bid_id == bid_y
        assert [m.id for m in team_service.get_team_members(host.uid)] == [member.id]

        messages = [n["message"] for n in notifier.list_for_user(cleaner_y.uid)]
        assert any("was accepted" in message for message in messages)

    def test_acceptance_is_a_single_write(self, cleaning_service, store, host, cleaner, cleaner_y):
        job = _post(cleaning_service, host)
        _bid(cleaning_service, job["id"], cleaner, 100, 3)
        bid_y = _bid(cleaning_service, job["id"], cleaner_y, 90, 4)
        snapshots = []
        subscription = store.subscribe("cleaningJobs", {"id": job["id"]}, callback=snapshots.append)

        cleaning_service.accept_bid(job["id"], bid_y, host)
        subscription.close()

        # Nobody observes an accepted job with pending bids
        for (doc,) in snapshots[1:]:
            assert doc["status"] == "accepted"
            assert all(bid.get("status") in ("accepted", "rejected") for bid in doc["bids"])

    def test_second_acceptance_conflicts(self, cleaning_service, host, cleaner, cleaner_y):
        job = _post(cleaning_service, host)
        bid_x = _bid(cleaning_service, job["id"], cleaner, 100, 3)
        bid_y = _bid(cleaning_service, job["id"], cleaner_y, 90, 4)
        cleaning_service.accept_bid(job["id"], bid_y, host)

        with pytest.raises(ConflictError):
            cleaning_service.accept_bid(job["id"], bid_x, host)
        with pytest.raises(ConflictError):
            cleaning_service.place_bid(job["id"], cleaner, BidCreate(amount=80))

    def test_unknown_bid(self, cleaning_service, host, cleaner):
        job = _post(cleaning_service, host)
        _bid(cleaning_service, job["id"], cleaner, 100, 3)

        with pytest.raises(NotFoundError):
            cleaning_service.accept_bid(job["id"], "no-such-bid", host)

    def test_only_posting_host_may_accept(self, cleaning_service, host, cleaner):
        job = _post(cleaning_service, host)
        bid = _bid(cleaning_service, job["id"], cleaner, 100, 3)
        intruder = Actor(uid="host-2", role=UserRole.host)

        with pytest.raises(ConflictError):
            cleaning_service.accept_bid(job["id"], bid, intruder)

    def test_existing_member_is_not_enrolled_twice(self, cleaning_service, team_service, store, host, cleaner):
        existing = team_service.create_team_member(host.uid, TeamMemberCreate(name="Cara Clean"))
        job = _post(cleaning_service, host)
        bid = _bid(cleaning_service, job["id"], cleaner, 100, 3)

        _, member = cleaning_service.accept_bid(job["id"], bid, host)

        assert member.id == existing.id
        assert len(team_service.get_team_members(host.uid)) == 1

    def test_second_won_job_queues_behind_first(self, cleaning_service, host, cleaner):
        first, second = _post(cleaning_service, host), _post(cleaning_service, host, "9 Elm St")
        cleaning_service.accept_bid(first["id"], _bid(cleaning_service, first["id"], cleaner, 100, 3), host)

        accepted, _ = cleaning_service.accept_bid(
            second["id"], _bid(cleaning_service, second["id"], cleaner, 80, 2), host
        )

        assert accepted["cleanerPriority"] == 2
        assert accepted["estimatedStartTime"] == NOW + 60 * MINUTE_MS


class TestCleaningLifecycle:
    def _won(self, cleaning_service, host, cleaner, address="456 Oak Ave"):
        job = _post(cleaning_service, host, address)
        accepted, _ = cleaning_service.accept_bid(job["id"], _bid(cleaning_service, job["id"], cleaner, 100, 3), host)
        return accepted

    def test_start_and_complete(self, cleaning_service, host, cleaner, notifier):
        job = self._won(cleaning_service, host, cleaner)

        started = cleaning_service.start_cleaning_job(job["id"], cleaner.uid)
        assert started["status"] == "in_progress"

        done = cleaning_service.complete_cleaning_job(job["id"], cleaner.uid)
        assert done["status"] == "completed"
        assert done["cleanerPriority"] is None
        assert notifier.list_for_user(host.uid)

    def test_completion_renumbers_cleaner_queue(self, cleaning_service, host, cleaner):
        first = self._won(cleaning_service, host, cleaner)
        second = self._won(cleaning_service, host, cleaner, "9 Elm St")

        cleaning_service.start_cleaning_job(first["id"], cleaner.uid)
        cleaning_service.complete_cleaning_job(first["id"], cleaner.uid)

        assert cleaning_service.get_cleaning_job(second["id"])["cleanerPriority"] == 1

    def test_one_cleaning_in_progress_at_a_time(self, cleaning_service, host, cleaner):
        first = self._won(cleaning_service, host, cleaner)
        second = self._won(cleaning_service, host, cleaner, "9 Elm St")
        cleaning_service.start_cleaning_job(first["id"], cleaner.uid)

        with pytest.raises(ConflictError):
            cleaning_service.start_cleaning_job(second["id"], cleaner.uid)

    def test_directly_assigned_job_gets_priority_on_start(self, cleaning_service, host, cleaner):
        job = _post(cleaning_service, host)
        assigned = cleaning_service.assign_cleaning_job(job["id"], cleaner.uid, "Cara Clean")
        assert assigned["status"] == "assigned"

        started = cleaning_service.start_cleaning_job(job["id"], cleaner.uid)

        assert started["status"] == "in_progress"
        assert started["cleanerPriority"] == 1

    def test_cannot_start_open_job(self, cleaning_service, host, cleaner):
        job = _post(cleaning_service, host)
        with pytest.raises(ConflictError):
            cleaning_service.start_cleaning_job(job["id"], cleaner.uid)

    def test_cancel_accepted_job_releases_queue_slot(self, cleaning_service, host, cleaner):
        first = self._won(cleaning_service, host, cleaner)
        second = self._won(cleaning_service, host, cleaner, "9 Elm St")

        cancelled = cleaning_service.cancel_cleaning_job(first["id"], host, "Guest cancelled")

        assert cancelled["status"] == "cancelled"
        assert cleaning_service.get_cleaning_job(second["id"])["cleanerPriority"] == 1
        with pytest.raises(ConflictError):
            cleaning_service.cancel_cleaning_job(first["id"], host)

    def test_other_host_cannot_cancel(self, cleaning_service, host):
        job = _post(cleaning_service, host)
        stranger = Actor(uid="host-2", role=UserRole.host)

        with pytest.raises(ConflictError):
            cleaning_service.cancel_cleaning_job(job["id"], stranger)
        assert cleaning_service.get_cleaning_job(job["id"])["status"] == "open"

    def test_visibility_by_role(self, cleaning_service, host, cleaner, cleaner_y):
        won = self._won(cleaning_service, host, cleaner)
        open_job = _post(cleaning_service, host, "9 Elm St")

        mine = {job["id"] for job in cleaning_service.get_cleaning_jobs_for(cleaner)}
        theirs = {job["id"] for job in cleaning_service.get_cleaning_jobs_for(cleaner_y)}
        hosted = {job["id"] for job in cleaning_service.get_cleaning_jobs_for(host)}

        assert mine == {won["id"], open_job["id"]}
        assert theirs == {open_job["id"]}
        assert hosted == {won["id"], open_job["id"]}
