import uuid
from datetime import date, datetime
from pydantic import BaseModel

from teaminova.models.common import IssueItemType, IssueSeverity, IssueStatus
from teaminova.schemas.common import ProfileRef, ProjectRef


class IssueCreate(BaseModel):
    project_id: uuid.UUID | None = None
    date_identified: date | None = None
    severity: IssueSeverity = "medium"
    item_type: IssueItemType = "issue"
    status: IssueStatus = "open"
    description: str = ""
    owner_id: uuid.UUID | None = None
    target_resolution_date: date | None = None
    recommended_action: str | None = None
    comments: str | None = None
    resolution_notes: str | None = None


class IssueUpdate(BaseModel):
    """Author is not updatable."""
    project_id: uuid.UUID | None = None
    date_identified: date | None = None
    severity: IssueSeverity | None = None
    item_type: IssueItemType | None = None
    status: IssueStatus | None = None
    description: str | None = None
    owner_id: uuid.UUID | None = None
    target_resolution_date: date | None = None
    recommended_action: str | None = None
    comments: str | None = None
    resolution_notes: str | None = None


class IssueView(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID | None = None
    project: ProjectRef | None = None
    author_id: uuid.UUID
    author: ProfileRef | None = None
    date_identified: date
    severity: str
    item_type: str
    status: str
    description: str
    owner_id: uuid.UUID | None = None
    owner: ProfileRef | None = None
    target_resolution_date: date | None = None
    recommended_action: str | None = None
    comments: str | None = None
    resolution_notes: str | None = None
    created_at: datetime
    updated_at: datetime
    can_edit: bool = False
    can_delete: bool = False


class IssueGroup(BaseModel):
    name: str
    issues: list[IssueView]
