"""
Issue API tests: authorship, the edit and delete gates, and grouping.
"""

import pytest


async def create_issue(client, project, **fields):
    payload = {"project_id": project["id"], "description": "Payment provider SLA unclear"}
    payload.update(fields)
    response = await client.post("/issues/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateIssue:
    @pytest.mark.asyncio
    async def test_author_stamped_and_defaults(self, client, project):
        issue = await create_issue(client, project, severity="high", item_type="risk")

        assert issue["author"]["name"] == "Bob Builder"
        assert issue["status"] == "open"
        assert issue["severity"] == "high"
        assert issue["date_identified"]
        assert issue["can_edit"] is True
        assert issue["can_delete"] is False

    @pytest.mark.asyncio
    async def test_project_and_description_required(self, client, project):
        no_project = await client.post("/issues/", json={"description": "x"})
        no_description = await client.post("/issues/", json={"project_id": project["id"], "description": ""})

        assert no_project.status_code == 422
        assert no_description.status_code == 422


class TestIssueGates:
    @pytest.mark.asyncio
    async def test_only_author_updates(self, client, project, identity, users):
        issue = await create_issue(client, project)

        identity.user = users.carol
        denied = await client.patch(f"/issues/{issue['id']}", json={"status": "closed"})

        identity.user = users.bob
        allowed = await client.patch(f"/issues/{issue['id']}", json={"status": "closed"})

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["status"] == "closed"
        # Author never changes
        assert allowed.json()["author"]["name"] == "Bob Builder"

    @pytest.mark.asyncio
    async def test_only_admin_deletes(self, client, project, identity, users, grant_role):
        issue = await create_issue(client, project)

        author_attempt = await client.delete(f"/issues/{issue['id']}")
        assert author_attempt.status_code == 403
        assert "Only administrators can delete issues" in author_attempt.json()["message"]

        await grant_role(users.alice, "administrator")
        identity.user = users.alice
        admin_attempt = await client.delete(f"/issues/{issue['id']}")

        assert admin_attempt.status_code == 204
        assert (await client.get(f"/issues/{issue['id']}")).status_code == 404


class TestGrouping:
    @pytest.mark.asyncio
    async def test_group_by_severity(self, client, project):
        await create_issue(client, project, severity="low")
        await create_issue(client, project, severity="critical")

        groups = (await client.get("/issues/grouped", params={"group_by": "severity"})).json()

        assert [g["name"] for g in groups] == ["critical", "low"]

    @pytest.mark.asyncio
    async def test_group_by_project(self, client, project):
        other = (await client.post("/projects/", json={"name": "API Gateway"})).json()
        await create_issue(client, project)
        await create_issue(client, other)

        groups = (await client.get("/issues/grouped", params={"group_by": "project"})).json()

        assert [g["name"] for g in groups] == ["API Gateway", "Website Relaunch"]

    @pytest.mark.asyncio
    async def test_unknown_grouping_rejected(self, client):
        response = await client.get("/issues/grouped", params={"group_by": "mood"})
        assert response.status_code == 422
