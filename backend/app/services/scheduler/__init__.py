"""
Scheduler service for background invitation maintenance.
"""
from app.services.scheduler.scheduler_service import (
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)
from app.services.scheduler.invitation_expiry import (
    sweep_invitations,
    add_sweeper_job,
    remove_sweeper_job,
)

__all__ = [
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "sweep_invitations",
    "add_sweeper_job",
    "remove_sweeper_job",
]
