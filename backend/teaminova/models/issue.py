import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional
from sqlmodel import SQLModel, Field, Relationship

from teaminova.models.common import utcnow

if TYPE_CHECKING:
    from teaminova.models.profile import Profile
    from teaminova.models.project import Project


class Issue(SQLModel, table=True):
    """
    A tracked risk, bug, dependency or blocker on a project.

    author_id is stamped on creation and never changes.
    """

    __tablename__ = "issues"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID | None = Field(default=None, foreign_key="projects.id", index=True)
    author_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    owner_id: uuid.UUID | None = Field(default=None, foreign_key="profiles.id", index=True)

    date_identified: date = Field(default_factory=date.today)
    severity: str = Field(default="medium", index=True)
    item_type: str = Field(default="issue")
    status: str = Field(default="open", index=True)
    description: str
    target_resolution_date: date | None = Field(default=None)
    recommended_action: str | None = Field(default=None)
    comments: str | None = Field(default=None)
    resolution_notes: str | None = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationships
    project: Optional["Project"] = Relationship()
    author: Optional["Profile"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Issue.author_id"},
    )
    owner: Optional["Profile"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Issue.owner_id"},
    )
