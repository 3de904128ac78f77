import uuid
from datetime import datetime
from pydantic import BaseModel

from teaminova.models.common import AppRole


class ProfileView(BaseModel):
    """
    Team member as a given viewer sees it.

    `email` is either the full address or its masked form; `email_visible`
    says which.
    """
    id: uuid.UUID
    user_id: str
    name: str
    email: str
    email_visible: bool = False
    access_level: str
    role: str
    roles: list[str] = []
    avatar: str | None = None
    created_at: datetime


class MemberStats(BaseModel):
    profile_id: uuid.UUID
    assigned: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0


class TeamMemberView(ProfileView):
    stats: MemberStats


class RoleChange(BaseModel):
    role: AppRole


class AccessLevelChange(BaseModel):
    access_level: str


class ErrorLogView(BaseModel):
    index: int
    timestamp: datetime
    severity: str
    category: str
    message: str
    user_id: str | None = None
    context: dict = {}
    resolved: bool = False
