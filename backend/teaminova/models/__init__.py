from teaminova.models.profile import Profile, UserRole
from teaminova.models.project import Project, Milestone
from teaminova.models.task import Task, UpdateLog, RelatedTask
from teaminova.models.issue import Issue

__all__ = [
    "Profile",
    "UserRole",
    "Project",
    "Milestone",
    "Task",
    "UpdateLog",
    "RelatedTask",
    "Issue",
]
