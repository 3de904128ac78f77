"""
Firebase authentication for FastAPI.

Verifies Firebase ID tokens, extracts the viewer identity, and exposes the
account operations the core delegates to the auth provider (password reset,
account deletion).
"""

import os
from pathlib import Path
import firebase_admin
from firebase_admin import auth, credentials, exceptions as firebase_exceptions
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from teaminova.config import get_settings
from teaminova.exceptions import AuthProviderError
from teaminova.logging_config import get_logger

logger = get_logger(__name__)


def _init_firebase():
    try:
        firebase_admin.get_app()
        return  # Already initialized
    except ValueError:
        pass  # Need to initialize

    backend_dir = Path(__file__).parent.parent
    possible_paths = []

    configured = get_settings().firebase_credentials_path
    if configured:
        possible_paths.append(Path(configured))

    possible_paths.extend([
        backend_dir / "serviceAccountKey.json",
        backend_dir / "firebase-service-account.json",
    ])
    # Firebase's default naming pattern: *-firebase-adminsdk-*.json
    possible_paths.extend(backend_dir.glob("*-firebase-adminsdk-*.json"))

    env_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    if env_path:
        possible_paths.append(Path(env_path))

    for key_path in possible_paths:
        if key_path.exists() and key_path.is_file():
            cred = credentials.Certificate(str(key_path))
            firebase_admin.initialize_app(cred)
            logger.info(f"Firebase Admin SDK initialized with: {key_path.name}")
            return

    logger.warning("No Firebase service account key found! Token verification may fail.")
    firebase_admin.initialize_app()
    logger.info("Firebase Admin SDK initialized without credentials")


security = HTTPBearer()


class AuthenticatedUser:
    """Represents an authenticated user from Firebase."""

    def __init__(self, uid: str, email: str | None, name: str | None):
        self.uid = uid
        self.email = email
        self.name = name

    def __repr__(self):
        return f"AuthenticatedUser(uid={self.uid}, email={self.email})"


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthenticatedUser:
    """
    Verify Firebase ID token and return authenticated user.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    _init_firebase()
    try:
        decoded_token = auth.verify_id_token(credentials.credentials)

        uid = decoded_token["uid"]
        email = decoded_token.get("email")
        name = decoded_token.get("name")

        logger.debug(f"Authenticated user: {uid} ({email})")

        return AuthenticatedUser(uid=uid, email=email, name=name)

    except auth.ExpiredIdTokenError:
        logger.warning("Expired Firebase token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except auth.InvalidIdTokenError:
        logger.warning("Invalid Firebase token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        logger.error(f"Authentication error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthProvider:
    """Account operations delegated to Firebase."""

    def __init__(self, reset_redirect_url: str | None = None):
        self.reset_redirect_url = reset_redirect_url or get_settings().password_reset_redirect_url

    def send_password_reset(self, email: str) -> str:
        """Generate a password reset link for `email` and return it."""
        _init_firebase()
        try:
            settings = auth.ActionCodeSettings(url=self.reset_redirect_url)
            link = auth.generate_password_reset_link(email, action_code_settings=settings)
        except (auth.UserNotFoundError, firebase_exceptions.FirebaseError) as e:
            raise AuthProviderError(str(e)) from e
        logger.info(f"Password reset link generated for {email}")
        return link

    def delete_account(self, uid: str) -> None:
        _init_firebase()
        try:
            auth.delete_user(uid)
        except auth.UserNotFoundError:
            # Profile may outlive a manually removed account
            logger.warning(f"Auth account {uid} already gone")
        except firebase_exceptions.FirebaseError as e:
            raise AuthProviderError(str(e)) from e
        logger.info(f"Deleted auth account {uid}")


def get_auth_provider() -> AuthProvider:
    return AuthProvider()
