"""
Command dispatcher tests against a real store: local state bookkeeping,
the default project, failure reporting and the store timeout.
"""

import asyncio

import pytest
import pytest_asyncio

from teaminova.auth import AuthenticatedUser
from teaminova.config import Settings
from teaminova.error_reporting import ErrorReporter
from teaminova.exceptions import StoreError, StoreTimeoutError, ValidationError
from teaminova.models import Profile
from teaminova.schemas import TaskCreate, TaskUpdate
from teaminova.services.authorization import ViewerContext
from teaminova.services.commands import CommandDispatcher, resolve_profile
from teaminova.services.spreadsheet import ImportRow
from teaminova.services.state import TaskViewState
from teaminova.services.store import RecordStore


USER = AuthenticatedUser(uid="uid-erin", email="erin@example.com", name="Erin")


def import_row(line, title, project, **fields):
    values = {
        "line": line,
        "title": title,
        "description": "",
        "project": project,
        "status": "todo",
        "priority": "medium",
        "assignee": None,
        "due_date": None,
        "start_date": None,
        "percent_completed": 0,
        "estimated_hours": 0.0,
        "actual_hours": 0.0,
        "reference_url": None,
    }
    values.update(fields)
    return ImportRow(**values)


@pytest_asyncio.fixture
async def workspace(test_session):
    """A store with one profile and one project, plus a dispatcher for Erin."""
    store = RecordStore(test_session, Settings())
    profile = await store.insert_profile({"user_id": USER.uid, "name": "Erin", "email": USER.email})
    project = await store.insert_project({"name": "Operations", "project_manager_id": profile.id}, [])
    viewer = ViewerContext(user=USER, profile=profile, roles=["team_member"], is_admin=False)
    return store, project, viewer


def make_dispatcher(store, viewer, settings=None, state=None):
    return CommandDispatcher(store, viewer, ErrorReporter(), settings=settings or Settings(), state=state)


class TestLocalState:
    @pytest.mark.asyncio
    async def test_create_prepends_and_status_replaces_in_place(self, workspace):
        store, project, viewer = workspace
        state = TaskViewState()
        dispatcher = make_dispatcher(store, viewer, state=state)

        first = await dispatcher.create_task(TaskCreate(title="A", description="a", project_id=project.id))
        second = await dispatcher.create_task(TaskCreate(title="B", description="b", project_id=project.id))
        await dispatcher.change_status(str(first.id), "in-progress")

        assert [t.title for t in state] == ["B", "A"]
        assert state.get(first.id).status == "in-progress"
        assert state.get(second.id).status == "todo"

    @pytest.mark.asyncio
    async def test_failed_command_leaves_state_untouched(self, workspace):
        store, project, viewer = workspace
        state = TaskViewState()
        dispatcher = make_dispatcher(store, viewer, state=state)

        with pytest.raises(ValidationError):
            await dispatcher.create_task(TaskCreate(title="", description="x", project_id=project.id))

        assert len(state) == 0

    @pytest.mark.asyncio
    async def test_delete_drops_cached_view(self, workspace):
        store, project, viewer = workspace
        viewer.is_admin = True
        state = TaskViewState()
        dispatcher = make_dispatcher(store, viewer, state=state)
        keep = await dispatcher.create_task(TaskCreate(title="Keep", description="k", project_id=project.id))
        drop = await dispatcher.create_task(TaskCreate(title="Drop", description="d", project_id=project.id))

        await dispatcher.delete_task(drop.id)

        assert [t.id for t in state] == [keep.id]
        assert state.get(drop.id) is None


class TestCreateTask:
    @pytest.mark.asyncio
    async def test_default_project_used(self, workspace):
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer, settings=Settings(default_project_id=project.id))

        view = await dispatcher.create_task(TaskCreate(title="Triage inbox", description="Daily"))

        assert view.project_id == project.id

    @pytest.mark.asyncio
    async def test_completed_on_creation_gets_completion_date(self, workspace):
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer)

        view = await dispatcher.create_task(
            TaskCreate(title="Done already", description="x", project_id=project.id, status="completed")
        )

        assert view.completion_date is not None

    @pytest.mark.asyncio
    async def test_update_with_explicit_null_keeps_required_fields(self, workspace):
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer)
        view = await dispatcher.create_task(TaskCreate(title="T", description="x", project_id=project.id))

        updated = await dispatcher.update_task(view.id, TaskUpdate(priority=None, due_date=None))

        assert updated.priority == "medium"
        assert updated.due_date is None


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_generic_message_and_report(self, workspace, monkeypatch):
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer)

        async def broken_insert(values):
            raise StoreError("insert task failed")

        monkeypatch.setattr(store, "insert_task", broken_insert)

        with pytest.raises(StoreError) as exc_info:
            await dispatcher.create_task(TaskCreate(title="T", description="x", project_id=project.id))

        assert exc_info.value.message == "Failed to create task. Please try again."
        entry = dispatcher.reporter.recent()[0]
        assert entry.category.value == "database"
        assert entry.severity.value == "high"

    @pytest.mark.asyncio
    async def test_admin_commands_surface_store_message(self, workspace, monkeypatch):
        store, project, viewer = workspace
        viewer.is_admin = True
        dispatcher = make_dispatcher(store, viewer)

        async def broken_replace(user_id, role):
            raise StoreError("role table locked")

        monkeypatch.setattr(store, "replace_roles", broken_replace)

        with pytest.raises(StoreError) as exc_info:
            await dispatcher.change_role(USER.uid, "developer")

        assert "role table locked" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_store_calls_time_out(self, test_session):
        store = RecordStore(test_session, Settings(store_timeout_seconds=0.01))

        with pytest.raises(StoreTimeoutError) as exc_info:
            await store._run("slow call", asyncio.sleep(1))

        assert exc_info.value.status_code == 504


class TestImport:
    @pytest.mark.asyncio
    async def test_three_rows_one_unknown_project(self, workspace):
        """Row 2 is skipped; row 3 is still processed."""
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer)
        rows = [
            import_row(2, "First", "operations", assignee="ERIN@example.com"),
            import_row(3, "Second", "Marketing"),
            import_row(4, "Third", "Operations", status="completed"),
        ]

        summary = await dispatcher.import_tasks(rows)

        assert (summary.succeeded, summary.skipped, summary.failed) == (2, 1, 0)
        assert "Row 3" in summary.errors[0]
        tasks = await store.list_tasks()
        assert sorted(t.title for t in tasks) == ["First", "Third"]
        first = next(t for t in tasks if t.title == "First")
        assert first.assignee.name == "Erin"

    @pytest.mark.asyncio
    async def test_row_without_title_skipped(self, workspace):
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer)

        summary = await dispatcher.import_tasks([import_row(2, None, "Operations")])

        assert (summary.succeeded, summary.skipped) == (0, 1)

    @pytest.mark.asyncio
    async def test_failing_row_does_not_abort_batch(self, workspace, monkeypatch):
        """A row rejected by the database is rolled back alone; later rows still land."""
        store, project, viewer = workspace
        dispatcher = make_dispatcher(store, viewer)
        real_insert = store.insert_task

        async def insert_with_null_title(values):
            if values["title"] == "Bad":
                # NOT NULL violation raised by the database during flush
                values = {**values, "title": None}
            return await real_insert(values)

        monkeypatch.setattr(store, "insert_task", insert_with_null_title)

        summary = await dispatcher.import_tasks(
            [
                import_row(2, "Before", "Operations"),
                import_row(3, "Bad", "Operations"),
                import_row(4, "Good", "Operations"),
            ]
        )

        assert (summary.succeeded, summary.skipped, summary.failed) == (2, 0, 1)
        assert summary.errors == ["Row 3: insert task failed"]
        await store.session.commit()
        tasks = await store.list_tasks()
        assert sorted(t.title for t in tasks) == ["Before", "Good"]


def test_resolve_profile_prefers_id_then_email_or_name():
    erin = Profile(user_id="a", name="Erin", email="erin@example.com")
    frank = Profile(user_id="b", name="Frank", email="frank@example.com")

    assert resolve_profile([erin, frank], profile_id=frank.id, identifier="Erin") is frank
    assert resolve_profile([erin, frank], identifier="FRANK@example.com") is frank
    assert resolve_profile([erin, frank], identifier="erin") is erin
    assert resolve_profile([erin, frank], identifier=str(erin.id)) is erin
    assert resolve_profile([erin, frank], identifier="nobody") is None
    assert resolve_profile([erin, frank]) is None
