import uuid
from pydantic import BaseModel


class ProjectRef(BaseModel):
    """Joined project reference carried on tasks and issues."""
    id: uuid.UUID
    name: str
    color: str | None = None

    model_config = {"from_attributes": True}


class ProfileRef(BaseModel):
    """Joined person reference (assignee, manager, author, owner)."""
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}
