import pytest

from app.schemas.common import Location
from app.services.radius import partition_by_radius
from app.utils.geo import (
    ARRIVING,
    distance_meters,
    eta_minutes,
    meters_to_miles,
    progress_percent,
)

SF = {"lat": 37.7749, "lng": -122.4194}
OAKLAND = {"lat": 37.8044, "lng": -122.2712}


def test_distance_to_self_is_zero():
    assert distance_meters(SF, SF) == 0


def test_distance_is_symmetric():
    assert distance_meters(SF, OAKLAND) == pytest.approx(distance_meters(OAKLAND, SF))


def test_distance_sf_to_oakland():
    # roughly 13.4 km across the bay
    assert distance_meters(SF, OAKLAND) == pytest.approx(13_400, rel=0.02)


def test_distance_accepts_location_models():
    assert distance_meters(Location(**SF), OAKLAND) == pytest.approx(distance_meters(SF, OAKLAND))


def test_meters_to_miles():
    assert meters_to_miles(1609.34) == pytest.approx(1.0)


def test_progress_bounds():
    assert progress_percent(SF, SF) == 100.0
    assert progress_percent(SF, OAKLAND) == 0.0


def test_progress_is_linear_inside_ceiling():
    # ~2.5 km north of the destination
    halfway = {"lat": SF["lat"] + 2500 / 111_195, "lng": SF["lng"]}
    assert progress_percent(halfway, SF) == pytest.approx(50, abs=0.5)


def test_eta_minutes():
    assert eta_minutes(5000) == 10
    assert eta_minutes(15_000) == 30


def test_eta_under_a_minute_is_arriving():
    assert eta_minutes(0) == ARRIVING
    assert eta_minutes(200) == ARRIVING


class TestRadiusFilter:
    def _job(self, job_id, destination):
        return {"id": job_id, "status": "open", "destination": destination}

    def test_partitions_by_distance(self):
        near = self._job("near", {"lat": SF["lat"] + 0.01, "lng": SF["lng"]})
        far = self._job("far", OAKLAND)

        result = partition_by_radius([near, far], SF, radius_miles=5)

        assert [job["id"] for job in result.in_range] == ["near"]
        assert [job["id"] for job in result.out_of_range] == ["far"]

    def test_no_worker_location_keeps_everything_in_range(self):
        jobs = [self._job("a", SF), self._job("b", OAKLAND)]

        result = partition_by_radius(jobs, None, radius_miles=0.1)

        assert result.in_range == jobs
        assert result.out_of_range == []

    def test_job_without_destination_is_in_range(self):
        result = partition_by_radius([self._job("nowhere", None)], SF, radius_miles=1)
        assert [job["id"] for job in result.in_range] == ["nowhere"]

    def test_radius_is_inclusive(self):
        job = self._job("edge", OAKLAND)
        miles = meters_to_miles(distance_meters(SF, OAKLAND))

        result = partition_by_radius([job], SF, radius_miles=miles)

        assert result.in_range == [job]

    def test_preserves_input_order(self):
        jobs = [self._job(str(i), {"lat": SF["lat"] + i * 0.001, "lng": SF["lng"]}) for i in range(5)]
        result = partition_by_radius(list(reversed(jobs)), SF, radius_miles=10)
        assert [job["id"] for job in result.in_range] == ["4", "3", "2", "1", "0"]
