"""
Issue routes for the TeamInova API.
"""

import uuid
from typing import Literal
from fastapi import APIRouter, Depends, status

from teaminova.logging_config import get_logger
from teaminova.schemas import IssueCreate, IssueGroup, IssueUpdate, IssueView
from teaminova.services import authorization, converter, derived
from teaminova.services.authorization import ViewerContext
from teaminova.services.commands import CommandDispatcher
from teaminova.services.store import RecordStore
from teaminova.routes.deps import get_dispatcher, get_store, get_viewer

logger = get_logger(__name__)

router = APIRouter()

IssueGrouping = Literal["project", "severity", "date", "owner", "none"]


async def _issue_views(store: RecordStore, viewer: ViewerContext) -> list[IssueView]:
    return [
        converter.issue_to_view(
            issue,
            can_edit=authorization.can_edit_issue(viewer, issue),
            can_delete=authorization.can_delete_issue(viewer, issue),
        )
        for issue in await store.list_issues()
    ]


@router.get("/", response_model=list[IssueView])
async def list_issues(
    project_id: uuid.UUID | None = None,
    store: RecordStore = Depends(get_store),
    viewer: ViewerContext = Depends(get_viewer),
) -> list[IssueView]:
    """List issues, most recently identified first."""
    issues = await _issue_views(store, viewer)
    if project_id is not None:
        issues = [issue for issue in issues if issue.project_id == project_id]
    return issues


@router.get("/grouped", response_model=list[IssueGroup])
async def grouped_issues(
    group_by: IssueGrouping = "none",
    store: RecordStore = Depends(get_store),
    viewer: ViewerContext = Depends(get_viewer),
) -> list[IssueGroup]:
    """Issues partitioned into named buckets by project, severity, date or owner."""
    issues = await _issue_views(store, viewer)
    return [
        IssueGroup(name=name, issues=bucket)
        for name, bucket in derived.group_issues(issues, group_by).items()
    ]


@router.post("/", response_model=IssueView, status_code=status.HTTP_201_CREATED)
async def create_issue(
    issue_in: IssueCreate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> IssueView:
    """Create an issue authored by the current user."""
    return await dispatcher.create_issue(issue_in)


@router.get("/{issue_id}", response_model=IssueView)
async def get_issue(
    issue_id: uuid.UUID,
    store: RecordStore = Depends(get_store),
    viewer: ViewerContext = Depends(get_viewer),
) -> IssueView:
    issue = await store.get_issue(issue_id)
    return converter.issue_to_view(
        issue,
        can_edit=authorization.can_edit_issue(viewer, issue),
        can_delete=authorization.can_delete_issue(viewer, issue),
    )


@router.patch("/{issue_id}", response_model=IssueView)
async def update_issue(
    issue_id: uuid.UUID,
    issue_in: IssueUpdate,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> IssueView:
    """Update an issue. Only its author may do so."""
    return await dispatcher.update_issue(issue_id, issue_in)


@router.delete("/{issue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_issue(
    issue_id: uuid.UUID,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> None:
    """Delete an issue. Administrators only."""
    await dispatcher.delete_issue(issue_id)
    logger.info(f"Deleted issue: id={issue_id}")
