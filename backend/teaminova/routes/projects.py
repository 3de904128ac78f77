"""
Project routes for the TeamInova API.
"""

import uuid
from fastapi import APIRouter, Depends, status

from teaminova.error_reporting import ErrorReporter, get_error_reporter
from teaminova.logging_config import get_logger
from teaminova.schemas import (
    MilestoneCreate,
    MilestoneUpdate,
    ProjectCreate,
    ProjectUpdate,
    ProjectView,
)
from teaminova.schemas.views import StatusGroup
from teaminova.services import converter, derived
from teaminova.services.commands import CommandDispatcher
from teaminova.services.store import RecordStore
from teaminova.routes.deps import get_dispatcher, get_store, get_viewer
from teaminova.routes.tasks import load_task_views

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(get_viewer)])


@router.post("/", response_model=ProjectView, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProjectView:
    """Create a new project. The creator manages it unless a manager is given."""
    return await dispatcher.create_project(project_in)


@router.get("/", response_model=list[ProjectView])
async def list_projects(
    store: RecordStore = Depends(get_store),
) -> list[ProjectView]:
    """List all projects, newest first."""
    projects = await store.list_projects()

    logger.debug(f"Listed {len(projects)} projects")

    return [converter.project_to_view(project) for project in projects]


@router.get("/{project_id}", response_model=ProjectView)
async def get_project(
    project_id: uuid.UUID,
    store: RecordStore = Depends(get_store),
) -> ProjectView:
    """Get a project by ID."""
    return converter.project_to_view(await store.get_project(project_id))


@router.patch("/{project_id}", response_model=ProjectView)
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProjectView:
    """Update a project."""
    return await dispatcher.update_project(project_id, project_in)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: uuid.UUID,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> None:
    """
    Delete a project.

    Refused with 409 while any task belongs to the project.
    """
    await dispatcher.delete_project(project_id)
    logger.info(f"Deleted project: id={project_id}")


@router.get("/{project_id}/tasks", response_model=list[StatusGroup])
async def project_tasks(
    project_id: uuid.UUID,
    store: RecordStore = Depends(get_store),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> list[StatusGroup]:
    """The project's tasks grouped by status."""
    await store.get_project(project_id)
    views = await load_task_views(store, reporter, project_id=project_id)
    return [
        StatusGroup(status=task_status, tasks=tasks)
        for task_status, tasks in derived.group_by_status(views).items()
    ]


@router.post("/{project_id}/milestones", response_model=ProjectView, status_code=status.HTTP_201_CREATED)
async def add_milestone(
    project_id: uuid.UUID,
    milestone_in: MilestoneCreate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProjectView:
    """Append a milestone."""
    return await dispatcher.add_milestone(project_id, milestone_in)


@router.patch("/{project_id}/milestones/{milestone_id}", response_model=ProjectView)
async def update_milestone(
    project_id: uuid.UUID,
    milestone_id: uuid.UUID,
    milestone_in: MilestoneUpdate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProjectView:
    """Rename, reschedule or toggle a milestone."""
    return await dispatcher.update_milestone(project_id, milestone_id, milestone_in)


@router.delete("/{project_id}/milestones/{milestone_id}", response_model=ProjectView)
async def remove_milestone(
    project_id: uuid.UUID,
    milestone_id: uuid.UUID,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProjectView:
    return await dispatcher.remove_milestone(project_id, milestone_id)
