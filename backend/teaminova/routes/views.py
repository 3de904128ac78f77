"""
Read-only task views: kanban board, overdue report, dashboard and calendar.
"""

import uuid
from datetime import date
from fastapi import APIRouter, Depends, Query

from teaminova.error_reporting import ErrorReporter, get_error_reporter
from teaminova.logging_config import get_logger
from teaminova.schemas.views import (
    BoardColumn,
    CalendarDay,
    Dashboard,
    OverdueGroup,
    OverdueReport,
    OverdueTask,
    ProjectProgress,
)
from teaminova.services import derived
from teaminova.services.authorization import ViewerContext
from teaminova.services.store import RecordStore
from teaminova.routes.deps import get_store, get_viewer
from teaminova.routes.tasks import load_task_views

logger = get_logger(__name__)

router = APIRouter()


@router.get("/board", response_model=list[BoardColumn])
async def board(
    project_id: uuid.UUID | None = None,
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
    viewer: ViewerContext = Depends(get_viewer),
) -> list[BoardColumn]:
    """Kanban columns. On-hold and cancelled tasks are not on the board."""
    tasks = await load_task_views(store, reporter, project_id=project_id)
    columns = derived.kanban_columns(tasks)
    titles = dict(derived.BOARD_COLUMNS)
    return [
        BoardColumn(status=column, title=titles[column], tasks=column_tasks)
        for column, column_tasks in columns.items()
    ]


@router.get("/overdue", response_model=OverdueReport)
async def overdue(
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
    viewer: ViewerContext = Depends(get_viewer),
) -> OverdueReport:
    """Overdue tasks grouped by priority, oldest due date first."""
    today = date.today()
    tasks = await load_task_views(store, reporter)
    groups = [
        OverdueGroup(
            priority=priority,
            tasks=[OverdueTask(task=task, days_overdue=derived.days_overdue(task, today)) for task in bucket],
        )
        for priority, bucket in derived.overdue_by_priority(tasks, today).items()
    ]
    return OverdueReport(total=sum(len(g.tasks) for g in groups), groups=groups)


@router.get("/dashboard", response_model=Dashboard)
async def dashboard(
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
    viewer: ViewerContext = Depends(get_viewer),
) -> Dashboard:
    tasks = await load_task_views(store, reporter)
    projects = await store.list_projects()

    progress = []
    for project in projects:
        project_tasks = [t for t in tasks if t.project_id == project.id]
        completed = sum(1 for t in project_tasks if t.status == "completed")
        progress.append(ProjectProgress(
            project_id=project.id,
            name=project.name,
            total=len(project_tasks),
            completed=completed,
            progress=derived.completion_rate(project_tasks),
        ))

    return Dashboard(
        total_tasks=len(tasks),
        in_progress=sum(1 for t in tasks if t.status == "in-progress"),
        overdue=sum(1 for t in tasks if derived.is_overdue(t)),
        completion_rate=derived.completion_rate(tasks),
        my_tasks=derived.member_counts(tasks, viewer.profile_id).assigned if viewer.profile_id else 0,
        recent_tasks=derived.recent_tasks(tasks),
        upcoming_deadlines=derived.upcoming_deadlines(tasks),
        projects=progress,
    )


@router.get("/calendar", response_model=list[CalendarDay])
async def calendar(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
    viewer: ViewerContext = Depends(get_viewer),
) -> list[CalendarDay]:
    """Tasks due in the given month, one entry per day that has any."""
    tasks = await load_task_views(store, reporter)
    return [
        CalendarDay(date=day, tasks=day_tasks)
        for day, day_tasks in derived.tasks_by_due_date(tasks, year, month).items()
    ]
