import uuid
from datetime import date
from pydantic import BaseModel

from teaminova.schemas.task import TaskView


class BoardColumn(BaseModel):
    status: str
    title: str
    tasks: list[TaskView]


class OverdueTask(BaseModel):
    task: TaskView
    days_overdue: int


class OverdueGroup(BaseModel):
    priority: str
    tasks: list[OverdueTask]


class OverdueReport(BaseModel):
    total: int
    groups: list[OverdueGroup]


class StatusGroup(BaseModel):
    status: str
    tasks: list[TaskView]


class ProjectProgress(BaseModel):
    project_id: uuid.UUID
    name: str
    total: int
    completed: int
    progress: float


class Dashboard(BaseModel):
    total_tasks: int
    in_progress: int
    overdue: int
    completion_rate: float
    my_tasks: int
    recent_tasks: list[TaskView]
    upcoming_deadlines: list[TaskView]
    projects: list[ProjectProgress]


class CalendarDay(BaseModel):
    date: date
    tasks: list[TaskView]
