"""Shared vocabularies and helpers for the relational models."""

from datetime import datetime, timezone
from typing import Literal


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


TaskStatus = Literal["todo", "in-progress", "completed", "on-hold", "blocked", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "critical"]
ProjectStatus = Literal["planned", "started", "in-progress", "completed", "cancelled"]
IssueSeverity = Literal["critical", "high", "medium", "low"]
IssueItemType = Literal["issue", "bug", "dependency", "blocker", "risk", "other"]
IssueStatus = Literal["open", "under_investigation", "being_worked", "closed"]
AppRole = Literal[
    "administrator",
    "project_manager",
    "dev_lead",
    "developer",
    "product_owner",
    "team_member",
]

TASK_STATUSES: tuple[str, ...] = ("todo", "in-progress", "completed", "on-hold", "blocked", "cancelled")
TASK_PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "critical")

# Highest priority first; the first role a profile holds is its primary role
ROLE_PRIORITY: tuple[str, ...] = (
    "administrator",
    "project_manager",
    "dev_lead",
    "developer",
    "product_owner",
    "team_member",
)
DEFAULT_ROLE = "team_member"

ADMIN_ACCESS_LEVEL = "admin"
