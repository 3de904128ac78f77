"""
Team routes: profiles as the viewer may see them, plus the administrative
user-management actions.
"""

from fastapi import APIRouter, Depends, status

from teaminova.error_reporting import ErrorReporter, get_error_reporter
from teaminova.exceptions import NotFoundError
from teaminova.logging_config import get_logger
from teaminova.models import Profile
from teaminova.schemas import AccessLevelChange, MemberStats, ProfileView, RoleChange, TeamMemberView
from teaminova.services import converter, derived
from teaminova.services.authorization import ViewerContext
from teaminova.services.commands import CommandDispatcher
from teaminova.services.store import RecordStore
from teaminova.routes.deps import get_dispatcher, get_store, get_viewer
from teaminova.routes.tasks import load_task_views

logger = get_logger(__name__)

router = APIRouter()


async def _profile_view(store: RecordStore, viewer: ViewerContext, profile: Profile) -> ProfileView:
    can_view = await store.can_view_profile_email(viewer.user.uid, profile.user_id)
    return converter.profile_to_view(profile, await store.roles_for(profile.user_id), can_view)


async def _profile_of(store: RecordStore, user_id: str) -> Profile:
    profile = await store.get_profile_by_user(user_id)
    if profile is None:
        raise NotFoundError("Profile", user_id)
    return profile


@router.get("/", response_model=list[TeamMemberView])
async def list_members(
    store: RecordStore = Depends(get_store),
    viewer: ViewerContext = Depends(get_viewer),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> list[TeamMemberView]:
    """
    Every profile with its task counts. Emails are masked unless the viewer
    owns the profile or is an administrator.
    """
    profiles = await store.list_profiles()
    roles = await store.roles_by_user()
    tasks = await load_task_views(store, reporter)

    members = []
    for profile in profiles:
        can_view = await store.can_view_profile_email(viewer.user.uid, profile.user_id)
        view = converter.profile_to_view(profile, roles.get(profile.user_id, []), can_view)
        counts = derived.member_counts(tasks, profile.id)
        stats = MemberStats(
            profile_id=profile.id,
            assigned=counts.assigned,
            completed=counts.completed,
            in_progress=counts.in_progress,
            overdue=counts.overdue,
        )
        members.append(TeamMemberView(**view.model_dump(), stats=stats))

    logger.debug(f"Listed {len(members)} team members")

    return members


@router.get("/me", response_model=ProfileView)
async def get_me(
    store: RecordStore = Depends(get_store),
    viewer: ViewerContext = Depends(get_viewer),
) -> ProfileView:
    """The viewer's own profile."""
    return await _profile_view(store, viewer, viewer.profile)


@router.put("/{user_id}/role", response_model=ProfileView)
async def change_role(
    user_id: str,
    role_in: RoleChange,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProfileView:
    """Make the given role the account's only role."""
    await dispatcher.change_role(user_id, role_in.role)
    return await _profile_view(dispatcher.store, dispatcher.viewer, await _profile_of(dispatcher.store, user_id))


@router.post("/{user_id}/roles", response_model=ProfileView, status_code=status.HTTP_201_CREATED)
async def add_role(
    user_id: str,
    role_in: RoleChange,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProfileView:
    await dispatcher.add_role(user_id, role_in.role)
    return await _profile_view(dispatcher.store, dispatcher.viewer, await _profile_of(dispatcher.store, user_id))


@router.delete("/{user_id}/roles/{role}", response_model=ProfileView)
async def remove_role(
    user_id: str,
    role: str,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProfileView:
    await dispatcher.remove_role(user_id, role)
    return await _profile_view(dispatcher.store, dispatcher.viewer, await _profile_of(dispatcher.store, user_id))


@router.patch("/{user_id}/access-level", response_model=ProfileView)
async def update_access_level(
    user_id: str,
    access_in: AccessLevelChange,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> ProfileView:
    """Set the legacy access level field."""
    profile = await dispatcher.update_access_level(user_id, access_in.access_level)
    return await _profile_view(dispatcher.store, dispatcher.viewer, profile)


@router.post("/{user_id}/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def send_password_reset(
    user_id: str,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> dict:
    """Send the account a password reset email."""
    email = await dispatcher.send_password_reset(user_id)
    return {"status": "sent", "email": email}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> None:
    """Delete the account, its profile and role rows."""
    await dispatcher.delete_user(user_id)
    logger.info(f"Deleted user: {user_id}")
