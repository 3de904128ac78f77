"""
Task API tests: creation, status changes, cancellation, related tasks,
deletion gate and spreadsheet import/export.
"""

import io
import uuid
from datetime import date, timedelta

import pandas as pd
import pytest


async def create_task(client, project, **fields):
    payload = {"title": "Draft copy", "description": "Homepage hero text", "project_id": project["id"]}
    payload.update(fields)
    response = await client.post("/tasks/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateTask:
    @pytest.mark.asyncio
    async def test_create_task(self, client, project):
        task = await create_task(client, project, priority="high")

        assert task["title"] == "Draft copy"
        assert task["status"] == "todo"
        assert task["priority"] == "high"
        assert task["project"]["name"] == "Website Relaunch"
        assert task["update_log"] == []
        assert task["timeliness"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["title", "description"])
    async def test_required_fields(self, client, project, reporter, missing):
        """Validation failures never reach the store."""
        payload = {"title": "T", "description": "D", "project_id": project["id"]}
        payload[missing] = "   "

        response = await client.post("/tasks/", json=payload)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        listing = await client.get("/tasks/")
        assert listing.json() == []
        assert reporter.recent()[0].category.value == "validation"

    @pytest.mark.asyncio
    async def test_project_required_without_default(self, client):
        response = await client.post("/tasks/", json={"title": "T", "description": "D"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_assignee_resolved_by_email(self, client, project):
        # The first request by Bob created his profile
        task = await create_task(client, project, assignee="BOB.BUILDER@example.com")
        assert task["assignee"] == "Bob Builder"

    @pytest.mark.asyncio
    async def test_unknown_assignee_left_unassigned(self, client, project):
        task = await create_task(client, project, assignee="nobody@example.com")
        assert task["assignee"] is None
        assert task["assignee_id"] is None


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_change_status_updates_task(self, client, project):
        task = await create_task(client, project)

        response = await client.post(f"/tasks/{task['id']}/status", json={"status": "blocked"})

        assert response.status_code == 200
        assert response.json()["status"] == "blocked"

    @pytest.mark.asyncio
    async def test_completing_sets_completion_date(self, client, project):
        due = date.today() + timedelta(days=2)
        task = await create_task(client, project, due_date=due.isoformat())

        response = await client.post(f"/tasks/{task['id']}/status", json={"status": "completed"})

        body = response.json()
        assert body["completion_date"] == date.today().isoformat()
        assert body["timeliness"] == "2 days early"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("new_status", ["", "   ", "archived"])
    async def test_invalid_status_rejected(self, client, project, new_status):
        task = await create_task(client, project)

        response = await client.post(f"/tasks/{task['id']}/status", json={"status": new_status})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cancelled_requires_cancel_command(self, client, project):
        task = await create_task(client, project)

        response = await client.post(f"/tasks/{task['id']}/status", json={"status": "cancelled"})

        assert response.status_code == 422
        current = await client.get(f"/tasks/{task['id']}")
        assert current.json()["status"] == "todo"

    @pytest.mark.asyncio
    async def test_malformed_task_id_rejected(self, client):
        response = await client.post("/tasks/not-a-uuid/status", json={"status": "todo"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_any_status_may_follow_any_other(self, client, project):
        task = await create_task(client, project)
        for new_status in ["completed", "todo", "on-hold", "in-progress"]:
            response = await client.post(f"/tasks/{task['id']}/status", json={"status": new_status})
            assert response.json()["status"] == new_status


class TestPartialUpdate:
    @pytest.mark.asyncio
    async def test_only_sent_fields_change(self, client, project):
        task = await create_task(client, project, estimated_hours=8)

        response = await client.patch(f"/tasks/{task['id']}", json={"actual_hours": 10})

        body = response.json()
        assert body["actual_hours"] == 10
        assert body["estimated_hours"] == 8
        assert body["description"] == "Homepage hero text"
        assert body["remaining_hours"] == 0
        assert body["over_budget"] is True

    @pytest.mark.asyncio
    async def test_clearing_title_rejected(self, client, project):
        task = await create_task(client, project)
        response = await client.patch(f"/tasks/{task['id']}", json={"title": ""})
        assert response.status_code == 422


class TestUpdateLogAndCancellation:
    @pytest.mark.asyncio
    async def test_add_update_touches_nothing_else(self, client, project):
        task = await create_task(client, project, percent_completed=30)

        response = await client.post(f"/tasks/{task['id']}/updates", json={"text": "Waiting on legal"})

        body = response.json()
        assert [entry["text"] for entry in body["update_log"]] == ["Waiting on legal"]
        assert body["status"] == "todo"
        assert body["percent_completed"] == 30

    @pytest.mark.asyncio
    async def test_cancel_appends_justification(self, client, project):
        """After cancelling, status and the newest log entry agree."""
        task = await create_task(client, project)
        await client.post(f"/tasks/{task['id']}/updates", json={"text": "Started"})

        response = await client.post(
            f"/tasks/{task['id']}/cancel", json={"justification": "Client dropped the feature"}
        )

        body = response.json()
        assert body["status"] == "cancelled"
        assert "Client dropped the feature" in body["update_log"][0]["text"]
        assert len(body["update_log"]) == 2

    @pytest.mark.asyncio
    async def test_cancel_without_justification_changes_nothing(self, client, project):
        task = await create_task(client, project)

        response = await client.post(f"/tasks/{task['id']}/cancel", json={"justification": " "})

        assert response.status_code == 422
        current = (await client.get(f"/tasks/{task['id']}")).json()
        assert current["status"] == "todo"
        assert current["update_log"] == []

    @pytest.mark.asyncio
    async def test_cancel_unknown_task(self, client):
        response = await client.post(f"/tasks/{uuid.uuid4()}/cancel", json={"justification": "x"})
        assert response.status_code == 404


class TestRelatedTasks:
    @pytest.mark.asyncio
    async def test_links_are_one_directional(self, client, project):
        a = await create_task(client, project, title="A")
        b = await create_task(client, project, title="B")

        response = await client.put(
            f"/tasks/{a['id']}/related", json={"related_task_ids": [b["id"], a["id"]]}
        )

        assert response.json()["related_tasks"] == [b["id"]]
        detail = (await client.get(f"/tasks/{a['id']}")).json()
        assert [r["title"] for r in detail["related"]] == ["B"]
        other = (await client.get(f"/tasks/{b['id']}")).json()
        assert other["related_tasks"] == []

    @pytest.mark.asyncio
    async def test_replace_drops_old_links(self, client, project):
        a = await create_task(client, project, title="A")
        b = await create_task(client, project, title="B")
        c = await create_task(client, project, title="C")
        await client.put(f"/tasks/{a['id']}/related", json={"related_task_ids": [b["id"]]})

        response = await client.put(f"/tasks/{a['id']}/related", json={"related_task_ids": [c["id"]]})

        assert response.json()["related_tasks"] == [c["id"]]

    @pytest.mark.asyncio
    async def test_unknown_related_id_rejected(self, client, project):
        a = await create_task(client, project)
        response = await client.put(
            f"/tasks/{a['id']}/related", json={"related_task_ids": [str(uuid.uuid4())]}
        )
        assert response.status_code == 422


class TestDeleteTask:
    @pytest.mark.asyncio
    async def test_team_member_cannot_delete(self, client, project):
        task = await create_task(client, project)

        response = await client.delete(f"/tasks/{task['id']}")

        assert response.status_code == 403
        assert (await client.get(f"/tasks/{task['id']}")).status_code == 200

    @pytest.mark.asyncio
    async def test_project_manager_can_delete(self, client, project, grant_role, users):
        task = await create_task(client, project)
        other = await create_task(client, project, title="Other")
        await client.put(f"/tasks/{other['id']}/related", json={"related_task_ids": [task["id"]]})
        await grant_role(users.bob, "project_manager")

        response = await client.delete(f"/tasks/{task['id']}")

        assert response.status_code == 204
        assert (await client.get(f"/tasks/{task['id']}")).status_code == 404
        assert (await client.get(f"/tasks/{other['id']}")).json()["related_tasks"] == []


class TestListFilters:
    @pytest.mark.asyncio
    async def test_filters_and_newest_first(self, client, project):
        await create_task(client, project, title="Old", due_date=(date.today() - timedelta(days=3)).isoformat())
        await create_task(client, project, title="New search target")

        everything = (await client.get("/tasks/")).json()
        overdue = (await client.get("/tasks/", params={"status": "overdue"})).json()
        found = (await client.get("/tasks/", params={"search": "TARGET"})).json()

        assert [t["title"] for t in everything] == ["New search target", "Old"]
        assert [t["title"] for t in overdue] == ["Old"]
        assert [t["title"] for t in found] == ["New search target"]


class TestSpreadsheet:
    @pytest.mark.asyncio
    async def test_import_skips_unknown_project_and_continues(self, client, project):
        """Three rows, the second names a project that does not exist."""
        frame = pd.DataFrame(
            {
                "Task Title": ["One", "Two", "Three"],
                "Project": ["website relaunch", "Nowhere", "Website Relaunch"],
                "Status": ["done", "to do", "blocked"],
                "Assignee": ["bob.builder@example.com", "", "Unknown Person"],
            }
        )
        buffer = io.BytesIO()
        frame.to_excel(buffer, index=False, engine="openpyxl")

        response = await client.post(
            "/tasks/import",
            files={"file": ("tasks.xlsx", buffer.getvalue(), "application/octet-stream")},
        )

        summary = response.json()
        assert summary["succeeded"] == 2
        assert summary["skipped"] == 1
        assert summary["failed"] == 0
        tasks = (await client.get("/tasks/")).json()
        by_title = {t["title"]: t for t in tasks}
        assert set(by_title) == {"One", "Three"}
        assert by_title["One"]["status"] == "completed"
        assert by_title["One"]["assignee"] == "Bob Builder"
        assert by_title["Three"]["assignee"] is None

    @pytest.mark.asyncio
    async def test_export_uses_filtered_set(self, client, project):
        await create_task(client, project, title="Keep")
        other = await create_task(client, project, title="Skip")
        await client.post(f"/tasks/{other['id']}/status", json={"status": "blocked"})

        response = await client.get("/tasks/export", params={"format": "csv", "status": "todo"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        frame = pd.read_csv(io.BytesIO(response.content))
        assert list(frame["Task Title"]) == ["Keep"]
        assert list(frame.columns)[0] == "Task Title"

    @pytest.mark.asyncio
    async def test_round_trip_through_import(self, client, project):
        await create_task(client, project, title="Alpha", estimated_hours=3, priority="critical")
        await create_task(client, project, title="Beta", actual_hours=2)

        exported = await client.get("/tasks/export")
        response = await client.post(
            "/tasks/import",
            files={"file": ("tasks.xlsx", exported.content, "application/octet-stream")},
        )

        assert response.json()["succeeded"] == 2
        tasks = (await client.get("/tasks/")).json()
        alphas = [t for t in tasks if t["title"] == "Alpha"]
        assert len(alphas) == 2
        assert {t["priority"] for t in alphas} == {"critical"}
        assert {t["estimated_hours"] for t in alphas} == {3}
