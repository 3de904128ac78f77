"""
Team API tests: sign-up profiles, email masking, member stats and the
administrator-only user management actions.
"""

import pytest


class TestProfiles:
    @pytest.mark.asyncio
    async def test_first_request_creates_profile(self, client, identity, users):
        identity.user = users.carol

        me = (await client.get("/team/me")).json()

        # No display name on the token: the email local part is used
        assert me["name"] == "carol"
        assert me["email"] == "carol@example.com"
        assert me["email_visible"] is True
        assert me["role"] == "team_member"
        assert me["access_level"] == "user"

    @pytest.mark.asyncio
    async def test_other_emails_are_masked(self, client, identity, users):
        identity.user = users.alice
        await client.get("/team/me")
        identity.user = users.bob

        members = {m["name"]: m for m in (await client.get("/team/")).json()}

        assert members["Alice Admin"]["email"] == "al***@example.com"
        assert members["Alice Admin"]["email_visible"] is False
        assert members["Bob Builder"]["email"] == "bob.builder@example.com"

    @pytest.mark.asyncio
    async def test_admin_sees_every_email(self, client, identity, users, grant_role):
        await client.get("/team/me")
        await grant_role(users.alice, "administrator")
        identity.user = users.alice

        members = {m["name"]: m for m in (await client.get("/team/")).json()}

        assert members["Bob Builder"]["email"] == "bob.builder@example.com"
        assert members["Alice Admin"]["role"] == "administrator"

    @pytest.mark.asyncio
    async def test_member_stats(self, client, project):
        payload = {"description": "D", "project_id": project["id"], "assignee": "Bob Builder"}
        first = await client.post("/tasks/", json={"title": "One", **payload})
        await client.post("/tasks/", json={"title": "Two", **payload})
        await client.post(f"/tasks/{first.json()['id']}/status", json={"status": "completed"})

        members = (await client.get("/team/")).json()

        stats = members[0]["stats"]
        assert stats["assigned"] == 2
        assert stats["completed"] == 1
        assert stats["in_progress"] == 0


class TestUserManagement:
    @pytest.mark.asyncio
    async def test_non_admin_cannot_change_roles(self, client, identity, users):
        identity.user = users.carol
        await client.get("/team/me")
        identity.user = users.bob

        response = await client.put(f"/team/{users.carol.uid}/role", json={"role": "developer"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_replaces_and_adds_roles(self, client, identity, users, grant_role):
        await client.get("/team/me")
        await grant_role(users.alice, "administrator")
        identity.user = users.alice

        replaced = await client.put(f"/team/{users.bob.uid}/role", json={"role": "developer"})
        assert replaced.json()["roles"] == ["developer"]

        added = await client.post(f"/team/{users.bob.uid}/roles", json={"role": "project_manager"})
        assert added.json()["role"] == "project_manager"
        assert added.json()["roles"] == ["project_manager", "developer"]

        removed = await client.delete(f"/team/{users.bob.uid}/roles/project_manager")
        assert removed.json()["role"] == "developer"

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, client, identity, users, grant_role):
        await client.get("/team/me")
        await grant_role(users.alice, "administrator")
        identity.user = users.alice

        response = await client.delete(f"/team/{users.bob.uid}/roles/overlord")

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_access_level_admin_counts_as_administrator(self, client, identity, users, grant_role):
        await client.get("/team/me")
        await grant_role(users.alice, "administrator")
        identity.user = users.alice
        await client.patch(f"/team/{users.bob.uid}/access-level", json={"access_level": "admin"})

        identity.user = users.bob
        members = {m["name"]: m for m in (await client.get("/team/")).json()}

        assert members["Alice Admin"]["email_visible"] is True

    @pytest.mark.asyncio
    async def test_password_reset_goes_through_auth_provider(
        self, client, identity, users, grant_role, auth_provider
    ):
        await client.get("/team/me")
        await grant_role(users.alice, "administrator")
        identity.user = users.alice

        response = await client.post(f"/team/{users.bob.uid}/password-reset")

        assert response.status_code == 202
        assert auth_provider.resets == ["bob.builder@example.com"]

    @pytest.mark.asyncio
    async def test_delete_user(self, client, identity, users, grant_role, auth_provider, project):
        await client.post("/issues/", json={"project_id": project["id"], "description": "Bob's issue"})
        task = await client.post(
            "/tasks/",
            json={"title": "T", "description": "D", "project_id": project["id"], "assignee": "Bob Builder"},
        )
        await grant_role(users.alice, "administrator")
        identity.user = users.alice

        response = await client.delete(f"/team/{users.bob.uid}")

        assert response.status_code == 204
        assert auth_provider.deleted == [users.bob.uid]
        names = [m["name"] for m in (await client.get("/team/")).json()]
        assert "Bob Builder" not in names
        remaining = (await client.get(f"/tasks/{task.json()['id']}")).json()
        assert remaining["assignee"] is None
        assert (await client.get("/issues/")).json() == []

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_self(self, client, identity, users, grant_role):
        await grant_role(users.alice, "administrator")
        identity.user = users.alice

        response = await client.delete(f"/team/{users.alice.uid}")

        assert response.status_code == 422
