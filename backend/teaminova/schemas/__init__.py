from teaminova.schemas.common import ProjectRef, ProfileRef
from teaminova.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectView,
    MilestoneCreate,
    MilestoneUpdate,
    MilestoneView,
)
from teaminova.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskStatusChange,
    TaskCancel,
    TaskView,
    TaskDetail,
    UpdateLogCreate,
    UpdateLogEntry,
    RelatedTasksUpdate,
    RelatedTaskSummary,
    ImportSummary,
)
from teaminova.schemas.profile import (
    ProfileView,
    TeamMemberView,
    MemberStats,
    RoleChange,
    AccessLevelChange,
    ErrorLogView,
)
from teaminova.schemas.issue import IssueCreate, IssueUpdate, IssueView, IssueGroup

__all__ = [
    "ProjectRef",
    "ProfileRef",
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectView",
    "MilestoneCreate",
    "MilestoneUpdate",
    "MilestoneView",
    "TaskCreate",
    "TaskUpdate",
    "TaskStatusChange",
    "TaskCancel",
    "TaskView",
    "TaskDetail",
    "UpdateLogCreate",
    "UpdateLogEntry",
    "RelatedTasksUpdate",
    "RelatedTaskSummary",
    "ImportSummary",
    "ProfileView",
    "TeamMemberView",
    "MemberStats",
    "RoleChange",
    "AccessLevelChange",
    "ErrorLogView",
    "IssueCreate",
    "IssueUpdate",
    "IssueView",
    "IssueGroup",
]
