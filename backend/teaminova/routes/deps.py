"""
Shared route dependencies: the per-request record store, the viewer context
and the command dispatcher built from them.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teaminova.auth import AuthenticatedUser, AuthProvider, get_auth_provider, get_current_user
from teaminova.config import get_settings
from teaminova.database import get_session
from teaminova.error_reporting import ErrorReporter, get_error_reporter
from teaminova.logging_config import get_logger
from teaminova.models import Profile
from teaminova.models.common import DEFAULT_ROLE
from teaminova.services.authorization import ViewerContext
from teaminova.services.commands import CommandDispatcher
from teaminova.services.store import RecordStore

logger = get_logger(__name__)


async def get_store(session: AsyncSession = Depends(get_session)) -> RecordStore:
    return RecordStore(session, get_settings())


async def ensure_profile(store: RecordStore, user: AuthenticatedUser) -> Profile:
    """
    Return the viewer's profile, creating it on first sign-in together with
    the default role row.
    """
    profile = await store.get_profile_by_user(user.uid)
    if profile is not None:
        return profile

    email = user.email or ""
    name = user.name or email.split("@")[0] or user.uid
    profile = await store.insert_profile({"user_id": user.uid, "name": name, "email": email})
    await store.add_role(user.uid, DEFAULT_ROLE)
    logger.info(f"Signed up new account {user.uid} as '{name}'")
    return profile


async def get_viewer(
    user: AuthenticatedUser = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
) -> ViewerContext:
    profile = await ensure_profile(store, user)
    roles = await store.roles_for(user.uid)
    is_admin = await store.is_administrator(user.uid)
    return ViewerContext(user=user, profile=profile, roles=roles, is_admin=is_admin)


async def get_dispatcher(
    store: RecordStore = Depends(get_store),
    viewer: ViewerContext = Depends(get_viewer),
    reporter: ErrorReporter = Depends(get_error_reporter),
    auth_provider: AuthProvider = Depends(get_auth_provider),
) -> CommandDispatcher:
    # No view cache per request; responses carry the fresh views
    return CommandDispatcher(
        store,
        viewer,
        reporter,
        settings=get_settings(),
        auth_provider=auth_provider,
    )
