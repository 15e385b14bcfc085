from app.services.job import JobService, PendingJobOutbox
from app.services.cleaning_job import CleaningJobService
from .team_member import TeamMemberService
from .reconciler import AddressMatcher, AssignmentReconciler
from .worker_queue import QueueManager, QueueView

__all__ = [
    "JobService",
    "PendingJobOutbox",
    "CleaningJobService",
    "TeamMemberService",
    "AddressMatcher",
    "AssignmentReconciler",
    "QueueManager",
    "QueueView",
]
