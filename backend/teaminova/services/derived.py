"""
Derived task, issue and role state.

Nothing here is persisted. Each value follows from stored fields and, where a
date comparison is involved, from "today", which callers may pass in and
which otherwise defaults to the current date at call time.

The functions accept any object exposing the view-model attribute names
(`status`, `due_date`, `priority`, ...), so both converted views and test
doubles work.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, Optional, Sequence

from teaminova.models.common import DEFAULT_ROLE, ROLE_PRIORITY


# =============================================================================
# Kanban board
# =============================================================================

# The board is a completion-workflow view: on-hold and cancelled tasks have
# no column.
BOARD_COLUMNS: tuple[tuple[str, str], ...] = (
    ("todo", "To Do"),
    ("in-progress", "In Progress"),
    ("completed", "Completed"),
    ("blocked", "Blocked"),
)

# Fixed order of the per-project status listing
PROJECT_STATUS_ORDER: tuple[str, ...] = (
    "todo",
    "in-progress",
    "blocked",
    "on-hold",
    "completed",
    "cancelled",
)

CLOSED_STATUSES = frozenset({"completed", "cancelled"})


def board_column(task) -> Optional[str]:
    """Column a task sits in, or None when the board does not show it."""
    for status, _title in BOARD_COLUMNS:
        if task.status == status:
            return status
    return None


def kanban_columns(tasks: Iterable) -> "OrderedDict[str, list]":
    """Partition tasks into board columns, keeping input order within each."""
    columns: "OrderedDict[str, list]" = OrderedDict((status, []) for status, _ in BOARD_COLUMNS)
    for task in tasks:
        column = board_column(task)
        if column is not None:
            columns[column].append(task)
    return columns


def group_by_status(tasks: Iterable) -> "OrderedDict[str, list]":
    """Every status bucket in PROJECT_STATUS_ORDER, empty ones included."""
    groups: "OrderedDict[str, list]" = OrderedDict((status, []) for status in PROJECT_STATUS_ORDER)
    for task in tasks:
        groups.setdefault(task.status, []).append(task)
    return groups


# =============================================================================
# Overdue
# =============================================================================

def is_overdue(task, today: Optional[date] = None) -> bool:
    """
    A task is overdue when it has a due date strictly before today and is
    neither completed nor cancelled.
    """
    if task.due_date is None or task.status in CLOSED_STATUSES:
        return False
    return task.due_date < (today or date.today())


def days_overdue(task, today: Optional[date] = None) -> int:
    """Whole days elapsed since the due date."""
    return ((today or date.today()) - task.due_date).days


OVERDUE_PRIORITY_ORDER: tuple[str, ...] = ("critical", "high", "medium", "low")


def overdue_by_priority(tasks: Iterable, today: Optional[date] = None) -> "OrderedDict[str, list]":
    """
    Overdue tasks grouped by priority (critical first), each group sorted by
    due date ascending. All four groups are always present.
    """
    today = today or date.today()
    groups: "OrderedDict[str, list]" = OrderedDict((p, []) for p in OVERDUE_PRIORITY_ORDER)
    for task in tasks:
        if is_overdue(task, today) and task.priority in groups:
            groups[task.priority].append(task)
    for priority in groups:
        groups[priority].sort(key=lambda t: t.due_date)
    return groups


# =============================================================================
# Completion timeliness and hours
# =============================================================================

def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def completion_timeliness(task) -> Optional[str]:
    """
    "On-Time", "N day(s) late" or "N day(s) early" for completed tasks with
    both a due date and a completion date; None otherwise.
    """
    if task.status != "completed" or task.due_date is None or task.completion_date is None:
        return None
    diff_days = (task.completion_date - task.due_date).days
    if diff_days == 0:
        return "On-Time"
    if diff_days > 0:
        return f"{_plural_days(diff_days)} late"
    return f"{_plural_days(abs(diff_days))} early"


@dataclass(frozen=True)
class HoursSignal:
    remaining_hours: float
    over_budget: bool
    percent_completed: int


def hours_signal(task) -> HoursSignal:
    """Remaining hours and over-budget flag; percent complete is passed through as stored."""
    estimated = task.estimated_hours or 0
    actual = task.actual_hours or 0
    return HoursSignal(
        remaining_hours=max(0, estimated - actual),
        over_budget=actual > estimated,
        percent_completed=task.percent_completed,
    )


# =============================================================================
# Task list filtering
# =============================================================================

def filter_tasks(
    tasks: Iterable,
    search: Optional[str] = None,
    project_id: Any = None,
    status: Optional[str] = None,
    today: Optional[date] = None,
) -> list:
    """
    Apply the task list filters. `status` accepts any task status, "all",
    or the pseudo-status "overdue".
    """
    needle = (search or "").strip().lower()
    result = []
    for task in tasks:
        if needle:
            haystack = f"{task.title}\n{task.description or ''}".lower()
            if needle not in haystack:
                continue
        if project_id is not None and str(task.project_id) != str(project_id):
            continue
        if status and status != "all":
            if status == "overdue":
                if not is_overdue(task, today):
                    continue
            elif task.status != status:
                continue
        result.append(task)
    return result


# =============================================================================
# Issue grouping
# =============================================================================

ISSUE_SEVERITY_ORDER: tuple[str, ...] = ("critical", "high", "medium", "low")
ISSUE_GROUPINGS: tuple[str, ...] = ("project", "severity", "date", "owner", "none")

NO_TARGET_DATE = "No Target Date"
NO_PROJECT = "No Project"
UNASSIGNED = "Unassigned"
ALL_ISSUES = "All Issues"


def format_issue_date(value: date) -> str:
    return value.strftime("%b %d, %Y")


def _bucket(issues: Iterable, key: Callable[[Any], str]) -> "OrderedDict[str, list]":
    buckets: "OrderedDict[str, list]" = OrderedDict()
    for issue in issues:
        buckets.setdefault(key(issue), []).append(issue)
    return buckets


def group_issues(issues: Sequence, grouping: str = "none") -> "OrderedDict[str, list]":
    """
    Partition issues into named buckets.

    - severity: critical, high, medium, low; empty buckets omitted
    - date: sorted by target resolution date (falling back to date
      identified), bucketed by formatted target date; issues without a
      target date share the "No Target Date" bucket, which sits wherever its
      first issue sorts
    - project / owner: bucket per name, names ascending, the catch-all
      bucket last
    - none: a single bucket holding every issue
    """
    if grouping not in ISSUE_GROUPINGS:
        raise ValueError(f"Unknown issue grouping: {grouping}")

    if grouping == "severity":
        buckets = _bucket(issues, lambda i: i.severity)
        return OrderedDict(
            (severity, buckets[severity]) for severity in ISSUE_SEVERITY_ORDER if buckets.get(severity)
        )

    if grouping == "date":
        ordered = sorted(issues, key=lambda i: i.target_resolution_date or i.date_identified)
        return _bucket(
            ordered,
            lambda i: format_issue_date(i.target_resolution_date) if i.target_resolution_date else NO_TARGET_DATE,
        )

    if grouping == "project":
        return _named_buckets(issues, lambda i: i.project.name if i.project else None, NO_PROJECT)

    if grouping == "owner":
        return _named_buckets(issues, lambda i: i.owner.name if i.owner else None, UNASSIGNED)

    if not issues:
        return OrderedDict()
    return OrderedDict([(ALL_ISSUES, list(issues))])


def _named_buckets(issues: Iterable, name_of: Callable[[Any], Optional[str]], fallback: str):
    named = _bucket(issues, lambda i: name_of(i) or "")
    result: "OrderedDict[str, list]" = OrderedDict()
    for name in sorted(n for n in named if n):
        result[name] = named[name]
    if "" in named:
        result[fallback] = named[""]
    return result


# =============================================================================
# Roles
# =============================================================================

def resolve_primary_role(roles: Iterable[str]) -> str:
    """Highest-priority role held; team_member when none."""
    held = set(roles)
    for role in ROLE_PRIORITY:
        if role in held:
            return role
    return DEFAULT_ROLE


def sort_roles(roles: Iterable[str]) -> list[str]:
    """Distinct known roles in priority order."""
    held = set(roles)
    return [role for role in ROLE_PRIORITY if role in held]


# =============================================================================
# Aggregates
# =============================================================================

@dataclass(frozen=True)
class TaskCounts:
    assigned: int
    completed: int
    in_progress: int
    overdue: int


def member_counts(tasks: Iterable, profile_id: Any, today: Optional[date] = None) -> TaskCounts:
    """Task counts for one assignee."""
    mine = [t for t in tasks if t.assignee_id is not None and str(t.assignee_id) == str(profile_id)]
    return TaskCounts(
        assigned=len(mine),
        completed=sum(1 for t in mine if t.status == "completed"),
        in_progress=sum(1 for t in mine if t.status == "in-progress"),
        overdue=sum(1 for t in mine if is_overdue(t, today)),
    )


def completion_rate(tasks: Sequence) -> float:
    """Percent of tasks completed, 0 for an empty collection."""
    if not tasks:
        return 0.0
    completed = sum(1 for t in tasks if t.status == "completed")
    return completed / len(tasks) * 100


def upcoming_deadlines(tasks: Iterable, limit: int = 5) -> list:
    """Nearest due dates among tasks that are not completed."""
    pending = [t for t in tasks if t.due_date is not None and t.status != "completed"]
    pending.sort(key=lambda t: t.due_date)
    return pending[:limit]


def recent_tasks(tasks: Iterable, limit: int = 5) -> list:
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)[:limit]


def tasks_by_due_date(tasks: Iterable, year: int, month: int) -> "OrderedDict[date, list]":
    """Calendar buckets for one month, days ascending."""
    days: dict[date, list] = {}
    for task in tasks:
        due = task.due_date
        if due is not None and due.year == year and due.month == month:
            days.setdefault(due, []).append(task)
    return OrderedDict(sorted(days.items()))
