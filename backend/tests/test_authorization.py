"""
Test email masking and the mutation gates of the authorization filter.
"""

from types import SimpleNamespace

import pytest

from teaminova.auth import AuthenticatedUser
from teaminova.exceptions import PermissionDeniedError
from teaminova.services import authorization
from teaminova.services.authorization import ViewerContext, mask_email


def viewer(email="dana@example.com", roles=None, is_admin=False):
    return ViewerContext(
        user=AuthenticatedUser(uid="uid-dana", email=email, name="Dana"),
        profile=None,
        roles=roles or [],
        is_admin=is_admin,
    )


class TestMaskEmail:
    @pytest.mark.parametrize(
        "email, expected",
        [
            ("alexander@x.com", "ale***@x.com"),
            ("ale@x.com", "a***@x.com"),
            ("a@x.com", "***@x.com"),
            ("jo@example.org", "j***@example.org"),
        ],
    )
    def test_visible_prefix_is_half_the_local_part_capped_at_three(self, email, expected):
        assert mask_email(email) == expected

    def test_domain_is_kept(self):
        assert mask_email("someone@sub.domain.io").endswith("@sub.domain.io")

    def test_visible_email_only_masks_when_hidden(self):
        assert authorization.visible_email("alexander@x.com", True) == "alexander@x.com"
        assert authorization.visible_email("alexander@x.com", False) == "ale***@x.com"


class TestIssueGates:
    def test_author_can_edit_case_insensitively(self):
        issue = SimpleNamespace(author=SimpleNamespace(email="Dana@Example.com"))
        assert authorization.can_edit_issue(viewer(), issue)

    def test_other_users_cannot_edit(self):
        issue = SimpleNamespace(author=SimpleNamespace(email="someone@example.com"))
        # Being an administrator does not grant editing
        assert not authorization.can_edit_issue(viewer(is_admin=True), issue)

    def test_only_admins_delete(self):
        issue = SimpleNamespace(author=SimpleNamespace(email="dana@example.com"))
        assert not authorization.can_delete_issue(viewer(), issue)
        assert authorization.can_delete_issue(viewer(is_admin=True), issue)


class TestTaskAndUserGates:
    @pytest.mark.parametrize("roles", [["project_manager"], ["administrator", "developer"]])
    def test_managers_delete_tasks(self, roles):
        assert authorization.can_delete_task(viewer(roles=roles))

    def test_developers_do_not_delete_tasks(self):
        assert not authorization.can_delete_task(viewer(roles=["developer", "team_member"]))

    def test_user_management_requires_admin(self):
        assert not authorization.can_manage_users(viewer(roles=["project_manager"]))
        assert authorization.can_manage_users(viewer(is_admin=True))

    def test_require_raises_permission_denied(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            authorization.require(False, "delete tasks", viewer())
        assert exc_info.value.status_code == 403


class TestLegacyAdministrator:
    def test_email_or_access_level(self):
        by_email = SimpleNamespace(email="Root@Example.com", access_level="user")
        by_level = SimpleNamespace(email="x@example.com", access_level="admin")
        plain = SimpleNamespace(email="x@example.com", access_level="user")

        assert authorization.is_legacy_administrator(by_email, "root@example.com")
        assert authorization.is_legacy_administrator(by_level)
        assert not authorization.is_legacy_administrator(plain, "root@example.com")
        assert not authorization.is_legacy_administrator(None)
