"""
View model conversion.

Maps relational rows (with their joined references already loaded) into the
frontend-shaped schemas. Absent optional values, whether NULL or an empty
string in the row, always come out as None.
"""

from typing import Iterable, Optional

from teaminova.exceptions import MissingReferenceError
from teaminova.models import Issue, Profile, Project, Task
from teaminova.schemas import (
    IssueView,
    MilestoneView,
    ProfileRef,
    ProfileView,
    ProjectRef,
    ProjectView,
    RelatedTaskSummary,
    TaskDetail,
    TaskView,
    UpdateLogEntry,
)
from teaminova.services import authorization, derived


def unset(value):
    """Normalize NULL / empty / whitespace-only strings to None."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _profile_ref(profile: Optional[Profile]) -> Optional[ProfileRef]:
    if profile is None:
        return None
    return ProfileRef(id=profile.id, name=profile.name)


def _project_ref(project: Optional[Project]) -> Optional[ProjectRef]:
    if project is None:
        return None
    return ProjectRef(id=project.id, name=project.name, color=unset(project.color))


def task_to_view(task: Task) -> TaskView:
    """
    Convert a task row.

    Raises:
        MissingReferenceError: the row has no project reference or no title.
    """
    if task.project_id is None:
        raise MissingReferenceError("Task", "project", str(task.id))
    if unset(task.title) is None:
        raise MissingReferenceError("Task", "title", str(task.id))

    logs = sorted(task.update_logs or [], key=lambda log: log.created_at, reverse=True)

    return TaskView(
        id=task.id,
        title=task.title,
        description=unset(task.description),
        status=task.status,
        priority=task.priority,
        # Name comes from the joined profile, not from assignee_id
        assignee=task.assignee.name if task.assignee is not None else None,
        assignee_id=task.assignee_id,
        project_id=task.project_id,
        project=_project_ref(task.project),
        due_date=task.due_date,
        start_date=task.start_date,
        completion_date=task.completion_date,
        percent_completed=task.percent_completed or 0,
        estimated_hours=task.estimated_hours or 0,
        actual_hours=task.actual_hours or 0,
        reference_url=unset(task.reference_url),
        update_log=[UpdateLogEntry(id=log.id, timestamp=log.created_at, text=log.text) for log in logs],
        related_tasks=[link.related_task_id for link in task.related_links or []],
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def tasks_to_views(tasks: Iterable[Task]) -> list[TaskView]:
    return [task_to_view(task) for task in tasks]


def task_to_detail(task: Task, all_tasks: Iterable[TaskView]) -> TaskDetail:
    """Task view plus summaries of the tasks it lists as related."""
    view = task_to_view(task)
    wanted = set(view.related_tasks)
    related = [
        RelatedTaskSummary(
            id=other.id,
            title=other.title,
            status=other.status,
            priority=other.priority,
            assignee=other.assignee,
        )
        for other in all_tasks
        if other.id in wanted
    ]
    return TaskDetail(**view.model_dump(exclude={"is_overdue", "timeliness", "remaining_hours", "over_budget"}), related=related)


def project_to_view(project: Project) -> ProjectView:
    milestones = [
        MilestoneView(id=m.id, title=m.title, due_date=m.due_date, completed=m.completed)
        for m in (project.milestones or [])
    ]
    return ProjectView(
        id=project.id,
        name=project.name,
        description=unset(project.description),
        status=project.status,
        project_manager_id=project.project_manager_id,
        project_manager=_profile_ref(project.project_manager),
        start_date=project.start_date,
        target_completion_date=project.target_completion_date,
        actual_completion_date=project.actual_completion_date,
        milestones=milestones,
        color=unset(project.color),
        created_at=project.created_at,
    )


def profile_to_view(profile: Profile, roles: Iterable[str], can_view_email: bool) -> ProfileView:
    """Convert a profile as seen by a viewer; the email is masked unless visible."""
    role_list = derived.sort_roles(roles)
    return ProfileView(
        id=profile.id,
        user_id=profile.user_id,
        name=profile.name,
        email=authorization.visible_email(profile.email, can_view_email),
        email_visible=can_view_email,
        access_level=profile.access_level,
        role=derived.resolve_primary_role(role_list),
        roles=role_list,
        avatar=unset(profile.avatar),
        created_at=profile.created_at,
    )


def issue_to_view(issue: Issue, can_edit: bool = False, can_delete: bool = False) -> IssueView:
    return IssueView(
        id=issue.id,
        project_id=issue.project_id,
        project=_project_ref(issue.project),
        author_id=issue.author_id,
        author=_profile_ref(issue.author),
        date_identified=issue.date_identified,
        severity=issue.severity,
        item_type=issue.item_type,
        status=issue.status,
        description=issue.description,
        owner_id=issue.owner_id,
        owner=_profile_ref(issue.owner),
        target_resolution_date=issue.target_resolution_date,
        recommended_action=unset(issue.recommended_action),
        comments=unset(issue.comments),
        resolution_notes=unset(issue.resolution_notes),
        created_at=issue.created_at,
        updated_at=issue.updated_at,
        can_edit=can_edit,
        can_delete=can_delete,
    )
