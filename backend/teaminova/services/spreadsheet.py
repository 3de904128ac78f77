"""
Spreadsheet import/export mapping for tasks.

Export writes one row per task under a fixed header set. Import reads the
same headers (plus a few accepted synonyms), located by name so column order
does not matter, and normalizes status/priority text through synonym tables.
"""

import io
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional

import pandas as pd

from teaminova.logging_config import get_logger

logger = get_logger(__name__)

SHEET_NAME = "Tasks"

TITLE = "Task Title"
DESCRIPTION = "Description"
PROJECT = "Project"
STATUS = "Status"
PRIORITY = "Priority"
ASSIGNEE = "Assignee"
DUE_DATE = "Due Date"
START_DATE = "Start Date"
PROGRESS = "Progress"
ESTIMATED_HOURS = "Estimated Hours"
ACTUAL_HOURS = "Actual Hours"
REFERENCE_URL = "Reference URL"

COLUMNS: tuple[str, ...] = (
    TITLE,
    DESCRIPTION,
    PROJECT,
    STATUS,
    PRIORITY,
    ASSIGNEE,
    DUE_DATE,
    START_DATE,
    PROGRESS,
    ESTIMATED_HOURS,
    ACTUAL_HOURS,
    REFERENCE_URL,
)

# Lower-cased alternative header -> canonical header
HEADER_SYNONYMS: dict[str, str] = {
    "title": TITLE,
    "task": TITLE,
    "task name": TITLE,
    "name": TITLE,
    "details": DESCRIPTION,
    "notes": DESCRIPTION,
    "project name": PROJECT,
    "state": STATUS,
    "task status": STATUS,
    "task priority": PRIORITY,
    "assigned to": ASSIGNEE,
    "assignee email": ASSIGNEE,
    "owner": ASSIGNEE,
    "due": DUE_DATE,
    "deadline": DUE_DATE,
    "start": START_DATE,
    "progress %": PROGRESS,
    "percent complete": PROGRESS,
    "% complete": PROGRESS,
    "estimate": ESTIMATED_HOURS,
    "est. hours": ESTIMATED_HOURS,
    "estimated": ESTIMATED_HOURS,
    "hours spent": ACTUAL_HOURS,
    "actual": ACTUAL_HOURS,
    "url": REFERENCE_URL,
    "link": REFERENCE_URL,
    "reference": REFERENCE_URL,
}

STATUS_SYNONYMS: dict[str, str] = {
    "todo": "todo",
    "to do": "todo",
    "to-do": "todo",
    "open": "todo",
    "new": "todo",
    "not started": "todo",
    "backlog": "todo",
    "in-progress": "in-progress",
    "in progress": "in-progress",
    "inprogress": "in-progress",
    "doing": "in-progress",
    "started": "in-progress",
    "wip": "in-progress",
    "active": "in-progress",
    "completed": "completed",
    "complete": "completed",
    "done": "completed",
    "finished": "completed",
    "closed": "completed",
    "on-hold": "on-hold",
    "on hold": "on-hold",
    "hold": "on-hold",
    "paused": "on-hold",
    "blocked": "blocked",
    "stuck": "blocked",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "abandoned": "cancelled",
}
DEFAULT_STATUS = "todo"

PRIORITY_SYNONYMS: dict[str, str] = {
    "low": "low",
    "minor": "low",
    "medium": "medium",
    "med": "medium",
    "normal": "medium",
    "moderate": "medium",
    "high": "high",
    "major": "high",
    "important": "high",
    "critical": "critical",
    "urgent": "critical",
    "highest": "critical",
}
DEFAULT_PRIORITY = "medium"

# Placeholders written by export for absent values
EMPTY_MARKERS = frozenset({"", "n/a", "na", "none", "-"})
UNASSIGNED = "Unassigned"


def normalize_status(value: Any) -> str:
    key = _text(value)
    return STATUS_SYNONYMS.get(key.lower(), DEFAULT_STATUS) if key else DEFAULT_STATUS


def normalize_priority(value: Any) -> str:
    key = _text(value)
    return PRIORITY_SYNONYMS.get(key.lower(), DEFAULT_PRIORITY) if key else DEFAULT_PRIORITY


def normalize_header(header: Any) -> Optional[str]:
    """Canonical column name for a header cell, or None if unrecognized."""
    text = _text(header)
    if not text:
        return None
    for column in COLUMNS:
        if text.lower() == column.lower():
            return column
    return HEADER_SYNONYMS.get(text.lower())


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    if text.lower() in EMPTY_MARKERS:
        return None
    return text


def _number(value: Any, default: float = 0.0) -> float:
    text = _text(value).rstrip("%").strip()
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    if math.isnan(number) or number < 0:
        return default
    return number


def _date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _optional_text(value)
    if text is None:
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


# =============================================================================
# Export
# =============================================================================

def task_to_row(task) -> dict[str, Any]:
    """One export row for a task view."""
    return {
        TITLE: task.title,
        DESCRIPTION: task.description or "",
        PROJECT: task.project.name if task.project else "N/A",
        STATUS: task.status,
        PRIORITY: task.priority,
        ASSIGNEE: task.assignee or UNASSIGNED,
        DUE_DATE: task.due_date.isoformat() if task.due_date else "N/A",
        START_DATE: task.start_date.isoformat() if task.start_date else "N/A",
        PROGRESS: f"{task.percent_completed}%",
        ESTIMATED_HOURS: task.estimated_hours,
        ACTUAL_HOURS: task.actual_hours,
        REFERENCE_URL: task.reference_url or "N/A",
    }


def export_rows(tasks: Iterable) -> list[dict[str, Any]]:
    return [task_to_row(task) for task in tasks]


def write_workbook(rows: list[dict[str, Any]], fmt: str = "xlsx") -> bytes:
    """Serialize export rows as a single-sheet xlsx workbook or a CSV file."""
    frame = pd.DataFrame(rows, columns=list(COLUMNS))
    if fmt == "csv":
        return frame.to_csv(index=False).encode("utf-8")

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    return buffer.getvalue()


def export_filename(fmt: str = "xlsx", today: Optional[date] = None) -> str:
    return f"tasks_export_{(today or date.today()).isoformat()}.{fmt}"


# =============================================================================
# Import
# =============================================================================

@dataclass
class ImportRow:
    """A spreadsheet row after header lookup and value normalization."""
    line: int
    title: Optional[str]
    description: str
    project: Optional[str]
    status: str
    priority: str
    assignee: Optional[str]
    due_date: Optional[date]
    start_date: Optional[date]
    percent_completed: int
    estimated_hours: float
    actual_hours: float
    reference_url: Optional[str]


def parse_row(raw: dict[str, Any], line: int = 0) -> ImportRow:
    """Normalize one raw row keyed by canonical header names."""
    assignee = _optional_text(raw.get(ASSIGNEE))
    if assignee is not None and assignee.lower() == UNASSIGNED.lower():
        assignee = None
    progress = _number(raw.get(PROGRESS))
    return ImportRow(
        line=line,
        title=_text(raw.get(TITLE)) or None,
        description=_text(raw.get(DESCRIPTION)),
        project=_optional_text(raw.get(PROJECT)),
        status=normalize_status(raw.get(STATUS)),
        priority=normalize_priority(raw.get(PRIORITY)),
        assignee=assignee,
        due_date=_date(raw.get(DUE_DATE)),
        start_date=_date(raw.get(START_DATE)),
        percent_completed=int(round(min(progress, 100))),
        estimated_hours=_number(raw.get(ESTIMATED_HOURS)),
        actual_hours=_number(raw.get(ACTUAL_HOURS)),
        reference_url=_optional_text(raw.get(REFERENCE_URL)),
    )


def read_rows(data: bytes, filename: str = "tasks.xlsx") -> list[dict[str, Any]]:
    """
    Read the first sheet of an xlsx workbook (or a CSV file) into raw rows
    keyed by canonical header. Unrecognized columns are dropped.
    """
    if filename.lower().endswith(".csv"):
        frame = pd.read_csv(io.BytesIO(data), dtype=object, keep_default_na=False)
    else:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=object, keep_default_na=False)

    renames: dict[Any, str] = {}
    for header in frame.columns:
        canonical = normalize_header(header)
        if canonical is not None and canonical not in renames.values():
            renames[header] = canonical
    unknown = [h for h in frame.columns if h not in renames]
    if unknown:
        logger.debug(f"Ignoring spreadsheet columns: {unknown}")

    frame = frame[list(renames)].rename(columns=renames)
    return frame.to_dict(orient="records")


def parse_rows(data: bytes, filename: str = "tasks.xlsx") -> list[ImportRow]:
    # Line numbers match the sheet: header is line 1
    return [parse_row(raw, line=index + 2) for index, raw in enumerate(read_rows(data, filename))]
