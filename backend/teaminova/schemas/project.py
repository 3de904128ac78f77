import uuid
from datetime import date, datetime
from pydantic import BaseModel

from teaminova.models.common import ProjectStatus
from teaminova.schemas.common import ProfileRef


class MilestoneCreate(BaseModel):
    title: str
    due_date: date
    completed: bool = False


class MilestoneUpdate(BaseModel):
    title: str | None = None
    due_date: date | None = None
    completed: bool | None = None


class MilestoneView(BaseModel):
    id: uuid.UUID
    title: str
    due_date: date
    completed: bool

    model_config = {"from_attributes": True}


class ProjectCreate(BaseModel):
    """Schema for creating a new project."""
    name: str = ""
    description: str | None = None
    status: ProjectStatus = "planned"
    project_manager_id: uuid.UUID | None = None
    start_date: date | None = None
    target_completion_date: date | None = None
    color: str | None = None
    milestones: list[MilestoneCreate] = []


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""
    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    project_manager_id: uuid.UUID | None = None
    start_date: date | None = None
    target_completion_date: date | None = None
    actual_completion_date: date | None = None
    color: str | None = None


class ProjectView(BaseModel):
    """Frontend-shaped project."""
    id: uuid.UUID
    name: str
    description: str | None = None
    status: str
    project_manager_id: uuid.UUID | None = None
    project_manager: ProfileRef | None = None
    start_date: date | None = None
    target_completion_date: date | None = None
    actual_completion_date: date | None = None
    milestones: list[MilestoneView] = []
    color: str | None = None
    created_at: datetime
