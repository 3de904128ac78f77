import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional
from sqlmodel import SQLModel, Field, Relationship

from teaminova.models.common import utcnow

if TYPE_CHECKING:
    from teaminova.models.profile import Profile
    from teaminova.models.project import Project


class Task(SQLModel, table=True):
    """
    Task model.

    Key fields:
    - status / priority: plain strings from the vocabularies in models.common
    - completion_date: only meaningful while status is "completed"
    - percent_completed: progress indicator set by people, never derived
    """

    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(index=True)
    description: str | None = Field(default=None)
    status: str = Field(default="todo", index=True)
    priority: str = Field(default="medium", index=True)

    # Foreign keys
    assignee_id: uuid.UUID | None = Field(default=None, foreign_key="profiles.id", index=True)
    project_id: uuid.UUID | None = Field(default=None, foreign_key="projects.id", index=True)

    due_date: date | None = Field(default=None)
    start_date: date | None = Field(default=None)
    completion_date: date | None = Field(default=None)
    percent_completed: int = Field(default=0, ge=0, le=100)
    estimated_hours: float = Field(default=0, ge=0)
    actual_hours: float = Field(default=0, ge=0)
    reference_url: str | None = Field(default=None)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationships
    assignee: Optional["Profile"] = Relationship()
    project: Optional["Project"] = Relationship(back_populates="tasks")
    update_logs: list["UpdateLog"] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "UpdateLog.created_at",
        },
    )

    # Links where this task is the source; the target side is not mirrored
    related_links: list["RelatedTask"] = Relationship(
        sa_relationship_kwargs={
            "foreign_keys": "RelatedTask.task_id",
            "cascade": "all, delete-orphan",
        },
    )


class UpdateLog(SQLModel, table=True):
    """Append-only progress note on a task."""

    __tablename__ = "update_log"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    task_id: uuid.UUID = Field(foreign_key="tasks.id", index=True)
    text: str
    created_at: datetime = Field(default_factory=utcnow)

    task: "Task" = Relationship(back_populates="update_logs")


class RelatedTask(SQLModel, table=True):
    """
    One-directional link: task_id lists related_task_id as related.

    Adding A -> B does not imply B -> A.
    """

    __tablename__ = "related_tasks"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", primary_key=True)
    related_task_id: uuid.UUID = Field(foreign_key="tasks.id", primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
