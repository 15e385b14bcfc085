from typing import List, NamedTuple, Optional

from app.crud.subscriptions import Document
from app.utils.geo import distance_meters, meters_to_miles


class RadiusPartition(NamedTuple):
    in_range: List[Document]
    out_of_range: List[Document]


def partition_by_radius(
    open_jobs: List[Document],
    worker_location: Optional[dict],
    radius_miles: float,
) -> RadiusPartition:
    """
    Split open jobs by distance from the worker.
    
    Without a worker location every job is in range, so a worker whose
    position is unknown still sees the whole pool. A job without a
    destination is likewise kept in range. Input order is preserved.
    
    Args:
        open_jobs: Job documents to bucket
        worker_location: ``{"lat", "lng"}`` or None
        radius_miles: Inclusive radius
        
    Returns:
        RadiusPartition(in_range, out_of_range)
    """
    if worker_location is None:
        return RadiusPartition(list(open_jobs), [])

    in_range, out_of_range = [], []
    for job in open_jobs:
        destination = job.get("destination")
        if not destination:
            in_range.append(job)
            continue
        miles = meters_to_miles(distance_meters(worker_location, destination))
        if miles <= radius_miles:
            in_range.append(job)
        else:
            out_of_range.append(job)
    return RadiusPartition(in_range, out_of_range)
