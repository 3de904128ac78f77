import uuid
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, computed_field

from teaminova.models.common import TaskPriority, TaskStatus
from teaminova.schemas.common import ProjectRef
from teaminova.services import derived


class TaskCreate(BaseModel):
    """
    Schema for creating a new task.

    `assignee` may carry a profile id, a name or an email; it is resolved
    against the profile collection. `project_id` falls back to the configured
    default project.
    """
    title: str = ""
    description: str = ""
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    assignee_id: uuid.UUID | None = None
    assignee: str | None = None
    project_id: uuid.UUID | None = None
    due_date: date | None = None
    start_date: date | None = None
    percent_completed: int = Field(default=0, ge=0, le=100)
    estimated_hours: float = Field(default=0, ge=0)
    actual_hours: float = Field(default=0, ge=0)
    reference_url: str | None = None


class TaskUpdate(BaseModel):
    """Schema for updating a task. Only fields that are sent are written."""
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_id: uuid.UUID | None = None
    assignee: str | None = None
    project_id: uuid.UUID | None = None
    due_date: date | None = None
    start_date: date | None = None
    completion_date: date | None = None
    percent_completed: int | None = Field(default=None, ge=0, le=100)
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    reference_url: str | None = None


class TaskStatusChange(BaseModel):
    """Payload of a board drag-and-drop or status menu change."""
    status: str = ""


class UpdateLogCreate(BaseModel):
    text: str = ""


class TaskCancel(BaseModel):
    justification: str = ""


class RelatedTasksUpdate(BaseModel):
    related_task_ids: list[uuid.UUID] = []


class UpdateLogEntry(BaseModel):
    id: uuid.UUID
    timestamp: datetime
    text: str


class RelatedTaskSummary(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    priority: str
    assignee: str | None = None


class TaskView(BaseModel):
    """
    Frontend-shaped task.

    Every optional relational value is either set or None; the derived
    fields are recomputed each time the view is serialized.
    """
    id: uuid.UUID
    title: str
    description: str | None = None
    status: str
    priority: str
    assignee: str | None = None
    assignee_id: uuid.UUID | None = None
    project_id: uuid.UUID
    project: ProjectRef | None = None
    due_date: date | None = None
    start_date: date | None = None
    completion_date: date | None = None
    percent_completed: int = 0
    estimated_hours: float = 0
    actual_hours: float = 0
    reference_url: str | None = None
    update_log: list[UpdateLogEntry] = []
    related_tasks: list[uuid.UUID] = []
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def is_overdue(self) -> bool:
        return derived.is_overdue(self)

    @computed_field
    @property
    def timeliness(self) -> Optional[str]:
        """On-Time / N day(s) late / N day(s) early; None when there is no data."""
        return derived.completion_timeliness(self)

    @computed_field
    @property
    def remaining_hours(self) -> float:
        return derived.hours_signal(self).remaining_hours

    @computed_field
    @property
    def over_budget(self) -> bool:
        return derived.hours_signal(self).over_budget


class TaskDetail(TaskView):
    """Payload of the open-task-detail signal: the view plus its related tasks."""
    related: list[RelatedTaskSummary] = []


class ImportSummary(BaseModel):
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = []
