"""
Command dispatcher.

Turns user intents into record store calls, converts the results into view
models and keeps an optional local TaskViewState in step once each store call
has resolved. Store failures are reported through the ErrorReporter and
re-raised with a generic message, except in administrative commands where
the store's own message is kept.
"""

import uuid
from datetime import date
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from teaminova.auth import AuthProvider
from teaminova.config import Settings, get_settings
from teaminova.error_reporting import ErrorReporter
from teaminova.exceptions import (
    MissingReferenceError,
    NotFoundError,
    ProjectHasTasksError,
    StoreError,
    ValidationError,
)
from teaminova.logging_config import get_logger
from teaminova.models import Profile, Project
from teaminova.models.common import ROLE_PRIORITY, TASK_STATUSES
from teaminova.schemas import (
    ImportSummary,
    IssueCreate,
    IssueUpdate,
    IssueView,
    MilestoneCreate,
    MilestoneUpdate,
    ProjectCreate,
    ProjectUpdate,
    ProjectView,
    TaskCreate,
    TaskUpdate,
    TaskView,
)
from teaminova.services import authorization, converter, spreadsheet
from teaminova.services.authorization import ViewerContext
from teaminova.services.state import TaskViewState
from teaminova.services.store import RecordStore

logger = get_logger(__name__)

T = TypeVar("T")

CANCELLATION_PREFIX = "Task cancelled. Justification:"

# Columns that cannot be cleared through a partial update
REQUIRED_TASK_FIELDS = frozenset({"title", "description", "status", "priority", "percent_completed", "estimated_hours", "actual_hours"})
REQUIRED_PROJECT_FIELDS = frozenset({"name", "status"})
REQUIRED_ISSUE_FIELDS = frozenset({"date_identified", "severity", "item_type", "status", "description"})


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _partial(updates, required: frozenset) -> dict[str, Any]:
    """Explicitly sent fields, minus nulls sent for columns that must stay set."""
    provided = updates.model_dump(exclude_unset=True)
    return {
        field: value
        for field, value in provided.items()
        if value is not None or field not in required
    }


def _parse_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid {field.replace('_', ' ')}",
            details=[{"loc": ["body", field], "msg": "not a valid id", "type": "uuid_parsing"}],
        ) from None


def resolve_profile(
    profiles: Iterable[Profile],
    profile_id: Optional[uuid.UUID] = None,
    identifier: Optional[str] = None,
) -> Optional[Profile]:
    """
    Find a profile by explicit id first, then by id, email or name given as
    free text (case-insensitive). None when nothing matches.
    """
    profiles = list(profiles)
    if profile_id is not None:
        match = next((p for p in profiles if p.id == profile_id), None)
        if match is not None:
            return match
    text = (identifier or "").strip()
    if not text:
        return None
    lowered = text.lower()
    for profile in profiles:
        if str(profile.id) == lowered:
            return profile
    for profile in profiles:
        if profile.email.lower() == lowered or profile.name.lower() == lowered:
            return profile
    return None


def resolve_project_by_name(projects: Iterable[Project], name: Optional[str]) -> Optional[Project]:
    """Case-insensitive exact name match."""
    if not name:
        return None
    lowered = name.strip().lower()
    return next((p for p in projects if p.name.strip().lower() == lowered), None)


class CommandDispatcher:
    """Executes commands on behalf of one viewer."""

    def __init__(
        self,
        store: RecordStore,
        viewer: ViewerContext,
        reporter: ErrorReporter,
        settings: Optional[Settings] = None,
        state: Optional[TaskViewState] = None,
        auth_provider: Optional[AuthProvider] = None,
    ):
        self.store = store
        self.viewer = viewer
        self.reporter = reporter
        self.settings = settings or get_settings()
        self.state = state
        self.auth_provider = auth_provider

    # =========================================================================
    # Failure handling
    # =========================================================================

    async def _attempt(
        self,
        action: str,
        failure_message: str,
        awaitable: Awaitable[T],
        admin: bool = False,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        try:
            return await awaitable
        except StoreError as e:
            self.reporter.log_database_error(
                f"Failed to {action}",
                exc=e,
                context=context,
                user_id=self.viewer.user.uid,
            )
            message = f"{failure_message}: {e.message}" if admin else failure_message
            error = StoreError(message, e.error_code)
            error.status_code = e.status_code
            raise error from e
        except MissingReferenceError as e:
            self.reporter.log_database_error(
                f"Failed to {action}",
                exc=e,
                context=context,
                user_id=self.viewer.user.uid,
            )
            raise

    def _invalid(self, error: ValidationError) -> ValidationError:
        self.reporter.log_validation_error(error.message, user_id=self.viewer.user.uid)
        return error

    def _require(self, value: Optional[str], field: str) -> None:
        if _is_blank(value):
            raise self._invalid(ValidationError.missing(field))

    def _track(self, view: TaskView, how: str = "replace") -> TaskView:
        if self.state is not None:
            if how == "prepend":
                self.state.prepend(view)
            else:
                self.state.replace(view)
        return view

    # =========================================================================
    # Tasks
    # =========================================================================

    async def _resolve_assignee_id(
        self,
        assignee_id: Optional[uuid.UUID],
        assignee: Optional[str],
    ) -> Optional[uuid.UUID]:
        if assignee_id is None and _is_blank(assignee):
            return None
        profiles = await self.store.list_profiles()
        profile = resolve_profile(profiles, assignee_id, assignee)
        if profile is None:
            logger.info(f"Assignee {assignee_id or assignee!r} not found, leaving task unassigned")
            return None
        return profile.id

    async def create_task(self, data: TaskCreate) -> TaskView:
        """
        Create a task. Title, description and project are required; the
        project falls back to the configured default.
        """
        self._require(data.title, "title")
        self._require(data.description, "description")
        project_id = data.project_id or self.settings.default_project_id
        if project_id is None:
            raise self._invalid(ValidationError.missing("project_id"))

        async def run() -> TaskView:
            if not await self.store.project_exists(project_id):
                raise NotFoundError("Project", str(project_id))
            values = data.model_dump(exclude={"assignee", "assignee_id", "project_id"})
            values["title"] = data.title.strip()
            values["project_id"] = project_id
            values["assignee_id"] = await self._resolve_assignee_id(data.assignee_id, data.assignee)
            if data.status == "completed":
                values["completion_date"] = date.today()
            task = await self.store.insert_task(values)
            return converter.task_to_view(task)

        view = await self._attempt(
            "create task",
            "Failed to create task. Please try again.",
            run(),
            context={"title": data.title},
        )
        logger.info(f"Task created: '{view.title}'")
        return self._track(view, "prepend")

    def _check_status(self, status: str) -> None:
        if status not in TASK_STATUSES:
            raise self._invalid(ValidationError(
                f"Unknown status: {status}",
                details=[{"loc": ["body", "status"], "msg": "unknown status", "type": "enum"}],
            ))
        if status == "cancelled":
            raise self._invalid(ValidationError(
                "Cancelling a task requires a justification",
                details=[{"loc": ["body", "justification"], "msg": "field required", "type": "missing"}],
            ))

    async def change_status(self, task_id: Any, status: Any) -> TaskView:
        """
        Status change from the board or a status menu. Both ids arrive from
        UI events, so they are checked before anything is sent.
        """
        if not isinstance(task_id, (str, uuid.UUID)) or _is_blank(str(task_id)):
            raise self._invalid(ValidationError.missing("task_id"))
        if not isinstance(status, str) or _is_blank(status):
            raise self._invalid(ValidationError.missing("status"))
        task_uuid = _parse_uuid(task_id, "task_id")
        status = status.strip()
        self._check_status(status)

        async def run() -> TaskView:
            values: dict[str, Any] = {"status": status}
            if status == "completed":
                current = await self.store.get_task(task_uuid)
                if current.completion_date is None or current.status != "completed":
                    values["completion_date"] = date.today()
            task = await self.store.update_task(task_uuid, values)
            return converter.task_to_view(task)

        view = await self._attempt(
            "change task status",
            "Failed to update task status. Please try again.",
            run(),
            context={"task_id": str(task_uuid), "status": status},
        )
        logger.info(f"Task {task_uuid} status changed to {status}")
        return self._track(view)

    async def update_task(self, task_id: uuid.UUID, updates: TaskUpdate) -> TaskView:
        """Write only the fields present in `updates`."""
        provided = _partial(updates, REQUIRED_TASK_FIELDS)
        if "title" in provided:
            self._require(provided["title"], "title")
        if "status" in provided:
            self._check_status(provided["status"])

        async def run() -> TaskView:
            values = {
                field: value
                for field, value in provided.items()
                if field not in ("assignee", "assignee_id")
            }
            if "assignee_id" in provided or "assignee" in provided:
                values["assignee_id"] = await self._resolve_assignee_id(
                    provided.get("assignee_id"), provided.get("assignee")
                )
            if values.get("project_id") is not None and not await self.store.project_exists(values["project_id"]):
                raise NotFoundError("Project", str(values["project_id"]))
            if values.get("status") == "completed" and "completion_date" not in values:
                current = await self.store.get_task(task_id)
                if current.status != "completed" or current.completion_date is None:
                    values["completion_date"] = date.today()
            task = await self.store.update_task(task_id, values)
            return converter.task_to_view(task)

        view = await self._attempt(
            "update task",
            "Failed to update task. Please try again.",
            run(),
            context={"task_id": str(task_id), "fields": sorted(provided)},
        )
        return self._track(view)

    async def add_update(self, task_id: uuid.UUID, text: str) -> TaskView:
        """Append an update-log entry; no other task field changes."""
        self._require(text, "text")

        async def run() -> TaskView:
            await self.store.insert_update_log(task_id, text.strip())
            return converter.task_to_view(await self.store.get_task(task_id))

        view = await self._attempt(
            "add task update",
            "Failed to add update. Please try again.",
            run(),
            context={"task_id": str(task_id)},
        )
        return self._track(view)

    async def cancel_task(self, task_id: uuid.UUID, justification: str) -> TaskView:
        """Cancel a task, recording the justification as its newest log entry."""
        self._require(justification, "justification")
        log_text = f"{CANCELLATION_PREFIX} {justification.strip()}"

        async def run() -> TaskView:
            return converter.task_to_view(await self.store.cancel_task(task_id, log_text))

        view = await self._attempt(
            "cancel task",
            "Failed to cancel task. Please try again.",
            run(),
            context={"task_id": str(task_id)},
        )
        logger.info(f"Task {task_id} cancelled")
        return self._track(view)

    async def update_related_tasks(self, task_id: uuid.UUID, related_ids: list[uuid.UUID]) -> TaskView:
        """Replace the related-task list of one task (links are one-directional)."""
        wanted = [rid for rid in dict.fromkeys(related_ids) if rid != task_id]

        async def run() -> TaskView:
            existing = await self.store.existing_task_ids(wanted)
            missing = [str(rid) for rid in wanted if rid not in existing]
            if missing:
                raise self._invalid(ValidationError(
                    "Related tasks not found",
                    details=[{"loc": ["body", "related_task_ids"], "msg": m, "type": "not_found"} for m in missing],
                ))
            return converter.task_to_view(await self.store.replace_related_tasks(task_id, wanted))

        view = await self._attempt(
            "update related tasks",
            "Failed to update related tasks. Please try again.",
            run(),
            context={"task_id": str(task_id)},
        )
        return self._track(view)

    async def delete_task(self, task_id: uuid.UUID) -> None:
        authorization.require(authorization.can_delete_task(self.viewer), "delete tasks", self.viewer)
        await self._attempt(
            "delete task",
            "Failed to delete task. Please try again.",
            self.store.delete_task(task_id),
            context={"task_id": str(task_id)},
        )
        if self.state is not None:
            self.state.remove(task_id)

    # =========================================================================
    # Spreadsheet import
    # =========================================================================

    async def import_tasks(self, rows: Iterable[spreadsheet.ImportRow]) -> ImportSummary:
        """
        Create one task per row, sequentially. Rows without a title or whose
        project does not resolve are skipped. Each insert runs in its own
        savepoint, so a failing row is counted and the batch carries on.
        """
        projects = await self.store.list_projects()
        profiles = await self.store.list_profiles()
        summary = ImportSummary()

        for row in rows:
            if row.title is None:
                summary.skipped += 1
                summary.errors.append(f"Row {row.line}: missing task title")
                continue
            project = resolve_project_by_name(projects, row.project)
            if project is None:
                summary.skipped += 1
                summary.errors.append(f"Row {row.line}: project '{row.project or ''}' not found")
                continue

            assignee = resolve_profile(profiles, identifier=row.assignee)
            values = {
                "title": row.title,
                "description": row.description,
                "project_id": project.id,
                "status": row.status,
                "priority": row.priority,
                "assignee_id": assignee.id if assignee else None,
                "due_date": row.due_date,
                "start_date": row.start_date,
                "percent_completed": row.percent_completed,
                "estimated_hours": row.estimated_hours,
                "actual_hours": row.actual_hours,
                "reference_url": row.reference_url,
            }
            if row.status == "completed":
                values["completion_date"] = date.today()
            try:
                async with self.store.savepoint():
                    task = await self.store.insert_task(values)
                view = converter.task_to_view(task)
            except (StoreError, MissingReferenceError) as e:
                self.reporter.log_database_error(
                    f"Failed to import row {row.line}",
                    exc=e,
                    user_id=self.viewer.user.uid,
                )
                summary.failed += 1
                summary.errors.append(f"Row {row.line}: {e.message}")
                continue
            self._track(view, "prepend")
            summary.succeeded += 1

        logger.info(
            f"Import finished: {summary.succeeded} imported, {summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    # =========================================================================
    # Projects
    # =========================================================================

    async def create_project(self, data: ProjectCreate) -> ProjectView:
        """Create a project; the creator manages it unless a manager is given."""
        self._require(data.name, "name")
        manager_id = data.project_manager_id or self.viewer.profile_id

        async def run() -> ProjectView:
            if data.project_manager_id is not None:
                await self.store.get_profile(data.project_manager_id)
            values = data.model_dump(exclude={"milestones", "project_manager_id", "color"}, exclude_none=True)
            values["name"] = data.name.strip()
            values["project_manager_id"] = manager_id
            if data.color:
                values["color"] = data.color
            milestones = [m.model_dump() for m in data.milestones]
            return converter.project_to_view(await self.store.insert_project(values, milestones))

        return await self._attempt(
            "create project",
            "Failed to create project. Please try again.",
            run(),
            context={"name": data.name},
        )

    async def update_project(self, project_id: uuid.UUID, updates: ProjectUpdate) -> ProjectView:
        provided = _partial(updates, REQUIRED_PROJECT_FIELDS)
        if "name" in provided:
            self._require(provided["name"], "name")

        async def run() -> ProjectView:
            if provided.get("project_manager_id") is not None:
                await self.store.get_profile(provided["project_manager_id"])
            return converter.project_to_view(await self.store.update_project(project_id, provided))

        return await self._attempt(
            "update project",
            "Failed to update project. Please try again.",
            run(),
            context={"project_id": str(project_id)},
        )

    async def delete_project(self, project_id: uuid.UUID) -> None:
        """Refused while any task still belongs to the project."""
        async def run() -> None:
            task_count = await self.store.count_project_tasks(project_id)
            if task_count > 0:
                raise ProjectHasTasksError(str(project_id), task_count)
            await self.store.delete_project(project_id)

        await self._attempt(
            "delete project",
            "Failed to delete project. Please try again.",
            run(),
            context={"project_id": str(project_id)},
        )

    async def add_milestone(self, project_id: uuid.UUID, data: MilestoneCreate) -> ProjectView:
        self._require(data.title, "title")

        async def run() -> ProjectView:
            return converter.project_to_view(await self.store.add_milestone(project_id, data.model_dump()))

        return await self._attempt(
            "add milestone",
            "Failed to add milestone. Please try again.",
            run(),
            context={"project_id": str(project_id)},
        )

    async def update_milestone(
        self, project_id: uuid.UUID, milestone_id: uuid.UUID, updates: MilestoneUpdate
    ) -> ProjectView:
        provided = updates.model_dump(exclude_unset=True, exclude_none=True)
        if "title" in provided:
            self._require(provided["title"], "title")

        async def run() -> ProjectView:
            return converter.project_to_view(
                await self.store.update_milestone(project_id, milestone_id, provided)
            )

        return await self._attempt(
            "update milestone",
            "Failed to update milestone. Please try again.",
            run(),
            context={"project_id": str(project_id), "milestone_id": str(milestone_id)},
        )

    async def remove_milestone(self, project_id: uuid.UUID, milestone_id: uuid.UUID) -> ProjectView:
        async def run() -> ProjectView:
            return converter.project_to_view(await self.store.delete_milestone(project_id, milestone_id))

        return await self._attempt(
            "remove milestone",
            "Failed to remove milestone. Please try again.",
            run(),
            context={"project_id": str(project_id), "milestone_id": str(milestone_id)},
        )

    # =========================================================================
    # Issues
    # =========================================================================

    def _issue_view(self, issue) -> IssueView:
        return converter.issue_to_view(
            issue,
            can_edit=authorization.can_edit_issue(self.viewer, issue),
            can_delete=authorization.can_delete_issue(self.viewer, issue),
        )

    async def create_issue(self, data: IssueCreate) -> IssueView:
        """Create an issue authored by the viewer's profile."""
        if data.project_id is None:
            raise self._invalid(ValidationError.missing("project_id"))
        self._require(data.description, "description")
        if self.viewer.profile is None:
            raise self._invalid(ValidationError("Profile not found"))

        async def run() -> IssueView:
            if not await self.store.project_exists(data.project_id):
                raise NotFoundError("Project", str(data.project_id))
            if data.owner_id is not None:
                await self.store.get_profile(data.owner_id)
            values = data.model_dump(exclude_none=True)
            values["description"] = data.description.strip()
            values["author_id"] = self.viewer.profile.id
            return self._issue_view(await self.store.insert_issue(values))

        return await self._attempt(
            "create issue",
            "Failed to create issue",
            run(),
            context={"project_id": str(data.project_id)},
        )

    async def update_issue(self, issue_id: uuid.UUID, updates: IssueUpdate) -> IssueView:
        provided = _partial(updates, REQUIRED_ISSUE_FIELDS)
        if "description" in provided:
            self._require(provided["description"], "description")

        async def run() -> IssueView:
            issue = await self.store.get_issue(issue_id)
            authorization.require(
                authorization.can_edit_issue(self.viewer, issue),
                "update this issue. You can only update your own issues",
                self.viewer,
            )
            return self._issue_view(await self.store.update_issue(issue_id, provided))

        return await self._attempt(
            "update issue",
            "Failed to update issue. You can only update your own issues.",
            run(),
            context={"issue_id": str(issue_id)},
        )

    async def delete_issue(self, issue_id: uuid.UUID) -> None:
        async def run() -> None:
            issue = await self.store.get_issue(issue_id)
            authorization.require(
                authorization.can_delete_issue(self.viewer, issue),
                "delete this issue. Only administrators can delete issues",
                self.viewer,
            )
            await self.store.delete_issue(issue_id)

        await self._attempt(
            "delete issue",
            "Failed to delete issue. Only administrators can delete issues.",
            run(),
            context={"issue_id": str(issue_id)},
        )

    # =========================================================================
    # User management (administrators only; store messages are surfaced)
    # =========================================================================

    def _require_admin(self) -> None:
        authorization.require(authorization.can_manage_users(self.viewer), "manage users", self.viewer)

    def _check_role(self, role: str) -> None:
        if role not in ROLE_PRIORITY:
            raise self._invalid(ValidationError(f"Unknown role: {role}"))

    async def _target_profile(self, user_id: str) -> Profile:
        profile = await self.store.get_profile_by_user(user_id)
        if profile is None:
            raise NotFoundError("Profile", user_id)
        return profile

    async def change_role(self, user_id: str, role: str) -> list[str]:
        """Make `role` the account's only role."""
        self._require_admin()
        self._check_role(role)

        async def run() -> list[str]:
            await self._target_profile(user_id)
            await self.store.replace_roles(user_id, role)
            return await self.store.roles_for(user_id)

        roles = await self._attempt("update role", "Error updating role", run(), admin=True,
                                    context={"user_id": user_id, "role": role})
        logger.info(f"User {user_id} role changed to {role}")
        return roles

    async def add_role(self, user_id: str, role: str) -> list[str]:
        self._require_admin()
        self._check_role(role)

        async def run() -> list[str]:
            await self._target_profile(user_id)
            if role not in await self.store.roles_for(user_id):
                await self.store.add_role(user_id, role)
            return await self.store.roles_for(user_id)

        return await self._attempt("add role", "Error adding role", run(), admin=True,
                                   context={"user_id": user_id, "role": role})

    async def remove_role(self, user_id: str, role: str) -> list[str]:
        self._require_admin()
        self._check_role(role)

        async def run() -> list[str]:
            await self._target_profile(user_id)
            await self.store.remove_role(user_id, role)
            return await self.store.roles_for(user_id)

        return await self._attempt("remove role", "Error removing role", run(), admin=True,
                                   context={"user_id": user_id, "role": role})

    async def update_access_level(self, user_id: str, access_level: str) -> Profile:
        self._require_admin()
        self._require(access_level, "access_level")
        return await self._attempt(
            "update access level",
            "Error updating access level",
            self.store.update_profile(user_id, {"access_level": access_level.strip()}),
            admin=True,
            context={"user_id": user_id},
        )

    async def send_password_reset(self, user_id: str) -> str:
        """Trigger a password reset for the account; returns the email it was sent to."""
        self._require_admin()
        profile = await self._attempt(
            "load profile", "Error sending password reset", self._target_profile(user_id), admin=True
        )
        provider = self.auth_provider or AuthProvider()
        provider.send_password_reset(profile.email)
        return profile.email

    async def delete_user(self, user_id: str) -> None:
        """Delete the account's profile (and its roles), then the auth account."""
        self._require_admin()
        if user_id == self.viewer.user.uid:
            raise self._invalid(ValidationError("You cannot delete your own account"))
        await self._attempt(
            "delete user",
            "Error deleting user",
            self.store.delete_profile(user_id),
            admin=True,
            context={"user_id": user_id},
        )
        provider = self.auth_provider or AuthProvider()
        provider.delete_account(user_id)
