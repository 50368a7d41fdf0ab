# models/project.py
from enum import Enum


class ProjectStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    PAYOUT_PROJECT = "payout_project"  # client approved, payout not yet released
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BudgetType(str, Enum):
    FIXED = "fixed"
    HOURLY = "hourly"


# Statuses counted as "active" on dashboards and stats
ACTIVE_STATUSES = (ProjectStatus.OPEN.value, ProjectStatus.IN_PROGRESS.value)

# (from, to) -> who may perform the move
PROJECT_TRANSITIONS = {
    (ProjectStatus.OPEN, ProjectStatus.IN_PROGRESS): "client",
    (ProjectStatus.OPEN, ProjectStatus.CANCELLED): "client",
    (ProjectStatus.IN_PROGRESS, ProjectStatus.IN_REVIEW): "freelancer",
    (ProjectStatus.IN_REVIEW, ProjectStatus.IN_PROGRESS): "client",
    (ProjectStatus.IN_REVIEW, ProjectStatus.PAYOUT_PROJECT): "client",
    (ProjectStatus.PAYOUT_PROJECT, ProjectStatus.COMPLETED): "client",
}


def can_transition(current: str, target: str) -> bool:
    try:
        key = (ProjectStatus(current), ProjectStatus(target))
    except ValueError:
        return False
    return key in PROJECT_TRANSITIONS


def transition_actor(current: str, target: str) -> str | None:
    """Return 'client' or 'freelancer' for a legal move, None otherwise."""
    if not can_transition(current, target):
        return None
    return PROJECT_TRANSITIONS[(ProjectStatus(current), ProjectStatus(target))]
