"""
Authorization filter.

Decides what a viewer may see and which mutations the API accepts. Email
visibility and the administrator check are answered by the record store's
policy functions; this module applies the answers.
"""

from dataclasses import dataclass
from typing import Optional

from teaminova.auth import AuthenticatedUser
from teaminova.exceptions import PermissionDeniedError
from teaminova.logging_config import get_logger
from teaminova.models import Issue, Profile
from teaminova.models.common import ADMIN_ACCESS_LEVEL

logger = get_logger(__name__)

MASK_TOKEN = "***"
MAX_VISIBLE_EMAIL_CHARS = 3

# Roles that may delete tasks
TASK_DELETE_ROLES = frozenset({"administrator", "project_manager"})


def mask_email(email: str) -> str:
    """
    Keep the first min(3, len(local) // 2) characters of the local part,
    mask the rest and keep the domain.

    >>> mask_email("alexander@x.com")
    'ale***@x.com'
    >>> mask_email("a@x.com")
    '***@x.com'
    """
    if not email:
        return ""
    local, sep, domain = email.partition("@")
    if not sep or not domain:
        return email
    visible = min(MAX_VISIBLE_EMAIL_CHARS, len(local) // 2)
    return f"{local[:visible]}{MASK_TOKEN}@{domain}"


def visible_email(email: str, can_view: bool) -> str:
    return email if can_view else mask_email(email)


def is_legacy_administrator(profile: Optional[Profile], legacy_admin_email: str = "") -> bool:
    """
    The administrative surface check carried over from the access-level era:
    the special-cased administrator email, or an "admin" access level.
    """
    if profile is None:
        return False
    if legacy_admin_email and profile.email.lower() == legacy_admin_email.lower():
        return True
    return profile.access_level == ADMIN_ACCESS_LEVEL


@dataclass
class ViewerContext:
    """
    Everything the filter needs to know about the viewer for one request.

    `is_admin` is the store's answer to the administrator policy call.
    """
    user: AuthenticatedUser
    profile: Optional[Profile]
    roles: list[str]
    is_admin: bool

    @property
    def profile_id(self):
        return self.profile.id if self.profile else None


def can_edit_issue(viewer: ViewerContext, issue: Issue) -> bool:
    """Only the issue's author may edit it, matched by account email."""
    author = issue.author
    if author is None or not viewer.user.email:
        return False
    return author.email.lower() == viewer.user.email.lower()


def can_delete_issue(viewer: ViewerContext, issue: Issue) -> bool:
    return viewer.is_admin


def can_delete_task(viewer: ViewerContext) -> bool:
    return viewer.is_admin or bool(TASK_DELETE_ROLES.intersection(viewer.roles))


def can_manage_users(viewer: ViewerContext) -> bool:
    """Role changes, password resets and account deletion."""
    return viewer.is_admin


def require(allowed: bool, action: str, viewer: ViewerContext) -> None:
    """Raise PermissionDeniedError unless `allowed`."""
    if not allowed:
        logger.warning(f"Denied {action} for user={viewer.user.uid}")
        raise PermissionDeniedError(f"You are not allowed to {action}")
