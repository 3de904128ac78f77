"""
Record store adapter.

Typed reads and writes over the relational collections. Reads eagerly load
the joined references the view models need. Every call is bounded by the
configured store timeout, and database failures surface as StoreError.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Optional, TypeVar

from sqlalchemy import delete, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select

from teaminova.config import Settings, get_settings
from teaminova.exceptions import NotFoundError, StoreError, StoreTimeoutError
from teaminova.logging_config import get_logger
from teaminova.models import (
    Issue,
    Milestone,
    Profile,
    Project,
    RelatedTask,
    Task,
    UpdateLog,
    UserRole,
)
from teaminova.models.common import utcnow
from teaminova.services.authorization import is_legacy_administrator

logger = get_logger(__name__)

T = TypeVar("T")

TASK_LOAD = (
    selectinload(Task.assignee),
    selectinload(Task.project),
    selectinload(Task.update_logs),
    selectinload(Task.related_links),
)
PROJECT_LOAD = (
    selectinload(Project.project_manager),
    selectinload(Project.milestones),
)
ISSUE_LOAD = (
    selectinload(Issue.project),
    selectinload(Issue.author),
    selectinload(Issue.owner),
)


class RecordStore:
    """One store adapter per database session."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.timeout = self.settings.store_timeout_seconds

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Store operation timed out: {operation}")
            raise StoreTimeoutError(operation, self.timeout) from None
        except SQLAlchemyError as e:
            logger.error(f"Store operation failed: {operation}: {e}")
            raise StoreError(f"{operation} failed") from e

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """
        Run a block inside a SAVEPOINT.

        A failure inside the block rolls back only the block's writes; the
        session stays usable for the caller's next operation.
        """
        async with self.session.begin_nested():
            yield

    # =========================================================================
    # Tasks
    # =========================================================================

    async def _load_task(self, task_id: uuid.UUID) -> Task:
        result = await self.session.execute(
            select(Task)
            .options(*TASK_LOAD)
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        task = result.scalars().first()
        if task is None:
            raise NotFoundError("Task", str(task_id))
        return task

    async def list_tasks(self, project_id: Optional[uuid.UUID] = None) -> list[Task]:
        """Tasks with assignee, project, update logs and related links; newest first."""
        async def op():
            query = select(Task).options(*TASK_LOAD).order_by(Task.created_at.desc())
            if project_id is not None:
                query = query.where(Task.project_id == project_id)
            result = await self.session.execute(query)
            return list(result.scalars().unique().all())

        tasks = await self._run("list tasks", op())
        logger.debug(f"Listed {len(tasks)} tasks" + (f" for project={project_id}" if project_id else ""))
        return tasks

    async def get_task(self, task_id: uuid.UUID) -> Task:
        return await self._run("get task", self._load_task(task_id))

    async def insert_task(self, values: dict[str, Any]) -> Task:
        async def op():
            task = Task(**values)
            self.session.add(task)
            await self.session.flush()
            return await self._load_task(task.id)

        task = await self._run("insert task", op())
        logger.info(f"Created task: id={task.id} title='{task.title}' project={task.project_id}")
        return task

    async def update_task(self, task_id: uuid.UUID, values: dict[str, Any]) -> Task:
        async def op():
            task = await self.session.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task", str(task_id))
            for field, value in values.items():
                setattr(task, field, value)
            task.updated_at = utcnow()
            await self.session.flush()
            return await self._load_task(task_id)

        logger.info(f"Updating task {task_id}: {values}")
        return await self._run("update task", op())

    async def delete_task(self, task_id: uuid.UUID) -> None:
        async def op():
            task = await self._load_task(task_id)
            # Links pointing at this task from other tasks
            await self.session.execute(delete(RelatedTask).where(RelatedTask.related_task_id == task_id))
            await self.session.delete(task)
            await self.session.flush()

        logger.info(f"Deleting task {task_id}")
        await self._run("delete task", op())

    async def insert_update_log(self, task_id: uuid.UUID, text: str) -> UpdateLog:
        async def op():
            if await self.session.get(Task, task_id) is None:
                raise NotFoundError("Task", str(task_id))
            log = UpdateLog(task_id=task_id, text=text)
            self.session.add(log)
            await self.session.flush()
            return log

        return await self._run("insert update log", op())

    async def cancel_task(self, task_id: uuid.UUID, log_text: str) -> Task:
        """
        Append the cancellation log entry and set status to cancelled.

        Both rows go out in a single flush inside the session transaction, so
        either both persist or the transaction rolls back with neither.
        """
        async def op():
            task = await self.session.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task", str(task_id))
            self.session.add(UpdateLog(task_id=task_id, text=log_text))
            task.status = "cancelled"
            task.updated_at = utcnow()
            await self.session.flush()
            return await self._load_task(task_id)

        logger.info(f"Cancelling task {task_id}")
        return await self._run("cancel task", op())

    async def replace_related_tasks(self, task_id: uuid.UUID, related_ids: list[uuid.UUID]) -> Task:
        """Replace the one-directional related links of a task."""
        async def op():
            task = await self._load_task(task_id)
            wanted = list(dict.fromkeys(related_ids))
            current = {link.related_task_id for link in task.related_links}
            for link in list(task.related_links):
                if link.related_task_id not in wanted:
                    task.related_links.remove(link)
            for related_id in wanted:
                if related_id not in current:
                    task.related_links.append(RelatedTask(task_id=task_id, related_task_id=related_id))
            await self.session.flush()
            return await self._load_task(task_id)

        logger.info(f"Replacing related tasks of {task_id}: {len(related_ids)} link(s)")
        return await self._run("replace related tasks", op())

    async def existing_task_ids(self, task_ids: list[uuid.UUID]) -> set[uuid.UUID]:
        async def op():
            if not task_ids:
                return set()
            result = await self.session.execute(select(Task.id).where(Task.id.in_(task_ids)))
            return set(result.scalars().all())

        return await self._run("check task ids", op())

    # =========================================================================
    # Projects
    # =========================================================================

    async def _load_project(self, project_id: uuid.UUID) -> Project:
        result = await self.session.execute(
            select(Project)
            .options(*PROJECT_LOAD)
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        project = result.scalars().first()
        if project is None:
            raise NotFoundError("Project", str(project_id))
        return project

    async def list_projects(self) -> list[Project]:
        async def op():
            result = await self.session.execute(
                select(Project).options(*PROJECT_LOAD).order_by(Project.created_at.desc())
            )
            return list(result.scalars().unique().all())

        return await self._run("list projects", op())

    async def get_project(self, project_id: uuid.UUID) -> Project:
        return await self._run("get project", self._load_project(project_id))

    async def project_exists(self, project_id: uuid.UUID) -> bool:
        async def op():
            return await self.session.get(Project, project_id) is not None

        return await self._run("check project", op())

    async def insert_project(self, values: dict[str, Any], milestones: list[dict[str, Any]]) -> Project:
        async def op():
            project = Project(**values)
            self.session.add(project)
            await self.session.flush()
            for position, milestone in enumerate(milestones):
                self.session.add(Milestone(project_id=project.id, position=position, **milestone))
            await self.session.flush()
            return await self._load_project(project.id)

        project = await self._run("insert project", op())
        logger.info(f"Created project: id={project.id} name='{project.name}'")
        return project

    async def update_project(self, project_id: uuid.UUID, values: dict[str, Any]) -> Project:
        async def op():
            project = await self.session.get(Project, project_id)
            if project is None:
                raise NotFoundError("Project", str(project_id))
            for field, value in values.items():
                setattr(project, field, value)
            project.updated_at = utcnow()
            await self.session.flush()
            return await self._load_project(project_id)

        logger.info(f"Updating project {project_id}: {values}")
        return await self._run("update project", op())

    async def count_project_tasks(self, project_id: uuid.UUID) -> int:
        async def op():
            result = await self.session.execute(
                select(func.count()).select_from(Task).where(Task.project_id == project_id)
            )
            return int(result.scalar_one())

        return await self._run("count project tasks", op())

    async def delete_project(self, project_id: uuid.UUID) -> None:
        async def op():
            result = await self.session.execute(
                select(Project)
                .options(selectinload(Project.tasks), selectinload(Project.milestones))
                .where(Project.id == project_id)
            )
            project = result.scalars().first()
            if project is None:
                raise NotFoundError("Project", str(project_id))
            await self.session.execute(
                update(Issue).where(Issue.project_id == project_id).values(project_id=None)
            )
            await self.session.delete(project)
            await self.session.flush()

        logger.info(f"Deleting project {project_id}")
        await self._run("delete project", op())

    async def add_milestone(self, project_id: uuid.UUID, values: dict[str, Any]) -> Project:
        async def op():
            project = await self._load_project(project_id)
            position = max((m.position for m in project.milestones), default=-1) + 1
            self.session.add(Milestone(project_id=project_id, position=position, **values))
            await self.session.flush()
            return await self._load_project(project_id)

        return await self._run("add milestone", op())

    async def update_milestone(self, project_id: uuid.UUID, milestone_id: uuid.UUID, values: dict[str, Any]) -> Project:
        async def op():
            milestone = await self.session.get(Milestone, milestone_id)
            if milestone is None or milestone.project_id != project_id:
                raise NotFoundError("Milestone", str(milestone_id))
            for field, value in values.items():
                setattr(milestone, field, value)
            await self.session.flush()
            return await self._load_project(project_id)

        return await self._run("update milestone", op())

    async def delete_milestone(self, project_id: uuid.UUID, milestone_id: uuid.UUID) -> Project:
        async def op():
            milestone = await self.session.get(Milestone, milestone_id)
            if milestone is None or milestone.project_id != project_id:
                raise NotFoundError("Milestone", str(milestone_id))
            await self.session.delete(milestone)
            await self.session.flush()
            return await self._load_project(project_id)

        return await self._run("delete milestone", op())

    # =========================================================================
    # Profiles and roles
    # =========================================================================

    async def list_profiles(self) -> list[Profile]:
        async def op():
            result = await self.session.execute(select(Profile).order_by(Profile.name))
            return list(result.scalars().all())

        return await self._run("list profiles", op())

    async def get_profile(self, profile_id: uuid.UUID) -> Profile:
        async def op():
            profile = await self.session.get(Profile, profile_id)
            if profile is None:
                raise NotFoundError("Profile", str(profile_id))
            return profile

        return await self._run("get profile", op())

    async def get_profile_by_user(self, user_id: str) -> Optional[Profile]:
        async def op():
            result = await self.session.execute(select(Profile).where(Profile.user_id == user_id))
            return result.scalars().first()

        return await self._run("get profile by account", op())

    async def insert_profile(self, values: dict[str, Any]) -> Profile:
        async def op():
            profile = Profile(**values)
            self.session.add(profile)
            await self.session.flush()
            return profile

        profile = await self._run("insert profile", op())
        logger.info(f"Created profile: id={profile.id} user={profile.user_id}")
        return profile

    async def update_profile(self, user_id: str, values: dict[str, Any]) -> Profile:
        async def op():
            profile = await self.get_profile_by_user(user_id)
            if profile is None:
                raise NotFoundError("Profile", user_id)
            for field, value in values.items():
                setattr(profile, field, value)
            profile.updated_at = utcnow()
            await self.session.flush()
            return profile

        return await self._run("update profile", op())

    async def delete_profile(self, user_id: str) -> Profile:
        """
        Delete a profile and its role rows. Tasks, projects and issues that
        referenced it lose the reference; issues it authored are deleted.
        """
        async def op():
            profile = await self.get_profile_by_user(user_id)
            if profile is None:
                raise NotFoundError("Profile", user_id)
            await self.session.execute(
                update(Task).where(Task.assignee_id == profile.id).values(assignee_id=None)
            )
            await self.session.execute(
                update(Project).where(Project.project_manager_id == profile.id).values(project_manager_id=None)
            )
            await self.session.execute(
                update(Issue).where(Issue.owner_id == profile.id).values(owner_id=None)
            )
            await self.session.execute(delete(Issue).where(Issue.author_id == profile.id))
            await self.session.execute(delete(UserRole).where(UserRole.user_id == user_id))
            await self.session.delete(profile)
            await self.session.flush()
            return profile

        logger.info(f"Deleting profile of account {user_id}")
        return await self._run("delete profile", op())

    async def roles_by_user(self) -> dict[str, list[str]]:
        """Role names grouped by account id, newest row first."""
        async def op():
            result = await self.session.execute(select(UserRole).order_by(UserRole.created_at.desc()))
            grouped: dict[str, list[str]] = {}
            for row in result.scalars().all():
                grouped.setdefault(row.user_id, []).append(row.role)
            return grouped

        return await self._run("list roles", op())

    async def roles_for(self, user_id: str) -> list[str]:
        async def op():
            result = await self.session.execute(select(UserRole.role).where(UserRole.user_id == user_id))
            return list(result.scalars().all())

        return await self._run("get roles", op())

    async def add_role(self, user_id: str, role: str) -> None:
        async def op():
            self.session.add(UserRole(user_id=user_id, role=role))
            await self.session.flush()

        await self._run("add role", op())

    async def remove_role(self, user_id: str, role: str) -> None:
        async def op():
            await self.session.execute(
                delete(UserRole).where(UserRole.user_id == user_id, UserRole.role == role)
            )
            await self.session.flush()

        await self._run("remove role", op())

    async def replace_roles(self, user_id: str, role: str) -> None:
        """Remove every role row of the account, then add `role`."""
        async def op():
            await self.session.execute(delete(UserRole).where(UserRole.user_id == user_id))
            self.session.add(UserRole(user_id=user_id, role=role))
            await self.session.flush()

        await self._run("replace roles", op())

    # =========================================================================
    # Issues
    # =========================================================================

    async def _load_issue(self, issue_id: uuid.UUID) -> Issue:
        result = await self.session.execute(
            select(Issue)
            .options(*ISSUE_LOAD)
            .where(Issue.id == issue_id)
            .execution_options(populate_existing=True)
        )
        issue = result.scalars().first()
        if issue is None:
            raise NotFoundError("Issue", str(issue_id))
        return issue

    async def list_issues(self) -> list[Issue]:
        """Issues with project, author and owner; most recently identified first."""
        async def op():
            result = await self.session.execute(
                select(Issue).options(*ISSUE_LOAD).order_by(Issue.date_identified.desc())
            )
            return list(result.scalars().unique().all())

        return await self._run("list issues", op())

    async def get_issue(self, issue_id: uuid.UUID) -> Issue:
        return await self._run("get issue", self._load_issue(issue_id))

    async def insert_issue(self, values: dict[str, Any]) -> Issue:
        async def op():
            issue = Issue(**values)
            self.session.add(issue)
            await self.session.flush()
            return await self._load_issue(issue.id)

        issue = await self._run("insert issue", op())
        logger.info(f"Created issue: id={issue.id} severity={issue.severity}")
        return issue

    async def update_issue(self, issue_id: uuid.UUID, values: dict[str, Any]) -> Issue:
        async def op():
            issue = await self.session.get(Issue, issue_id)
            if issue is None:
                raise NotFoundError("Issue", str(issue_id))
            for field, value in values.items():
                setattr(issue, field, value)
            issue.updated_at = utcnow()
            await self.session.flush()
            return await self._load_issue(issue_id)

        logger.info(f"Updating issue {issue_id}: {values}")
        return await self._run("update issue", op())

    async def delete_issue(self, issue_id: uuid.UUID) -> None:
        async def op():
            issue = await self.session.get(Issue, issue_id)
            if issue is None:
                raise NotFoundError("Issue", str(issue_id))
            await self.session.delete(issue)
            await self.session.flush()

        logger.info(f"Deleting issue {issue_id}")
        await self._run("delete issue", op())

    # =========================================================================
    # Authorization policies
    # =========================================================================

    async def is_administrator(self, user_id: str) -> bool:
        """
        Administrator role row, "admin" access level, or the configured
        legacy administrator email.
        """
        async def op():
            roles = await self.session.execute(
                select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == "administrator")
            )
            if roles.first() is not None:
                return True
            profile = await self.get_profile_by_user(user_id)
            return is_legacy_administrator(profile, self.settings.legacy_admin_email)

        return await self._run("check administrator", op())

    async def can_view_profile_email(self, viewer_user_id: str, profile_user_id: str) -> bool:
        """The profile's owner and administrators see the full email."""
        if viewer_user_id == profile_user_id:
            return True
        return await self.is_administrator(viewer_user_id)
