"""
Task routes for the TeamInova API.
"""

import uuid
from typing import Literal, Optional
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from teaminova.error_reporting import ErrorReporter, get_error_reporter
from teaminova.exceptions import MissingReferenceError, ValidationError
from teaminova.logging_config import get_logger
from teaminova.schemas import (
    ImportSummary,
    RelatedTasksUpdate,
    TaskCancel,
    TaskCreate,
    TaskDetail,
    TaskStatusChange,
    TaskUpdate,
    TaskView,
    UpdateLogCreate,
)
from teaminova.services import converter, derived, spreadsheet
from teaminova.services.commands import CommandDispatcher
from teaminova.services.store import RecordStore
from teaminova.routes.deps import get_dispatcher, get_store, get_viewer

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(get_viewer)])

SPREADSHEET_MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


async def load_task_views(
    store: RecordStore,
    reporter: ErrorReporter,
    project_id: Optional[uuid.UUID] = None,
) -> list[TaskView]:
    """
    Convert every task row. Rows that cannot be converted are reported and
    left out of the listing.
    """
    views = []
    for task in await store.list_tasks(project_id=project_id):
        try:
            views.append(converter.task_to_view(task))
        except MissingReferenceError as e:
            reporter.log_database_error(e.message, exc=e, context={"task_id": str(task.id)})
    return views


@router.get("/", response_model=list[TaskView])
async def list_tasks(
    search: str | None = None,
    project_id: uuid.UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> list[TaskView]:
    """
    List tasks, newest first.

    `status` takes a task status, "all" or "overdue".
    """
    views = await load_task_views(store, reporter)
    tasks = derived.filter_tasks(views, search=search, project_id=project_id, status=status_filter)
    logger.debug(f"Listed {len(tasks)} of {len(views)} tasks")
    return tasks


@router.post("/", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> TaskView:
    """
    Create a new task.

    If project_id is not provided, the configured default project is used.
    """
    return await dispatcher.create_task(task_in)


@router.get("/export")
async def export_tasks(
    format: Literal["xlsx", "csv"] = "xlsx",
    search: str | None = None,
    project_id: uuid.UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> Response:
    """Export the filtered task list as a spreadsheet."""
    views = await load_task_views(store, reporter)
    tasks = derived.filter_tasks(views, search=search, project_id=project_id, status=status_filter)
    content = spreadsheet.write_workbook(spreadsheet.export_rows(tasks), format)
    filename = spreadsheet.export_filename(format)

    logger.info(f"Exported {len(tasks)} tasks as {format}")

    return Response(
        content=content,
        media_type=SPREADSHEET_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=ImportSummary)
async def import_tasks(
    file: UploadFile = File(...),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ImportSummary:
    """Create tasks from an uploaded xlsx or csv file, one per row."""
    data = await file.read()
    filename = file.filename or "tasks.xlsx"
    try:
        rows = spreadsheet.parse_rows(data, filename)
    except (ValueError, KeyError) as e:
        logger.warning(f"Unreadable spreadsheet '{filename}': {e}")
        raise ValidationError(f"Could not read spreadsheet '{filename}'") from e
    return await dispatcher.import_tasks(rows)


@router.get("/{task_id}", response_model=TaskDetail)
async def get_task(
    task_id: uuid.UUID,
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> TaskDetail:
    """Get a task with summaries of its related tasks."""
    task = await store.get_task(task_id)
    views = await load_task_views(store, reporter)
    return converter.task_to_detail(task, views)


@router.patch("/{task_id}", response_model=TaskView)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> TaskView:
    """Update a task. Only the fields sent are written."""
    return await dispatcher.update_task(task_id, task_in)


@router.post("/{task_id}/status", response_model=TaskView)
async def change_status(
    task_id: str,
    change: TaskStatusChange,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> TaskView:
    """Move a task to another status (board drag-and-drop, status menu)."""
    return await dispatcher.change_status(task_id, change.status)


@router.post("/{task_id}/updates", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def add_update(
    task_id: uuid.UUID,
    update_in: UpdateLogCreate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> TaskView:
    """Append an entry to the task's update log."""
    return await dispatcher.add_update(task_id, update_in.text)


@router.post("/{task_id}/cancel", response_model=TaskView)
async def cancel_task(
    task_id: uuid.UUID,
    cancel_in: TaskCancel,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> TaskView:
    """Cancel a task. The justification becomes the newest update log entry."""
    return await dispatcher.cancel_task(task_id, cancel_in.justification)


@router.put("/{task_id}/related", response_model=TaskView)
async def update_related_tasks(
    task_id: uuid.UUID,
    related_in: RelatedTasksUpdate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> TaskView:
    """Replace the task's related-task list."""
    return await dispatcher.update_related_tasks(task_id, related_in.related_task_ids)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> None:
    """Delete a task permanently. Administrators and project managers only."""
    await dispatcher.delete_task(task_id)
    logger.info(f"Deleted task: id={task_id}")
