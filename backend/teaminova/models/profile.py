import uuid
from datetime import datetime
from sqlmodel import SQLModel, Field

from teaminova.models.common import utcnow


class Profile(SQLModel, table=True):
    """
    A person record tied to an authenticated account.

    `user_id` is the account id issued by the auth provider. `access_level`
    predates role rows and is kept for the legacy administrator check.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    name: str = Field(index=True)
    email: str = Field(index=True)
    access_level: str = Field(default="user")
    avatar: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserRole(SQLModel, table=True):
    """One role row for an account; an account may hold several."""

    __tablename__ = "user_roles"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True)
    role: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
