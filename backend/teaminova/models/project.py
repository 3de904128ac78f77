import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional
from sqlmodel import SQLModel, Field, Relationship

from teaminova.models.common import utcnow

if TYPE_CHECKING:
    from teaminova.models.profile import Profile
    from teaminova.models.task import Task


class Project(SQLModel, table=True):
    """Project model - groups tasks, owns milestones."""

    __tablename__ = "projects"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True)
    description: str | None = Field(default=None)
    status: str = Field(default="planned", index=True)
    project_manager_id: uuid.UUID | None = Field(default=None, foreign_key="profiles.id", index=True)
    start_date: date | None = Field(default=None)
    target_completion_date: date | None = Field(default=None)
    actual_completion_date: date | None = Field(default=None)
    color: str = Field(default="#3b82f6")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationships
    project_manager: Optional["Profile"] = Relationship()
    milestones: list["Milestone"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "Milestone.position",
        },
    )
    tasks: list["Task"] = Relationship(back_populates="project")


class Milestone(SQLModel, table=True):
    """An ordered checkpoint inside a project."""

    __tablename__ = "milestones"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", index=True)
    title: str
    due_date: date
    completed: bool = Field(default=False)
    position: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    project: "Project" = Relationship(back_populates="milestones")
