"""Authentication dependencies for FastAPI."""

import logging
from typing import Annotated

from fastapi import Depends, Request

from signon.auth.errors import SessionError
from signon.auth.oauth import ProviderRegistry
from signon.auth.session import SessionManager
from signon.auth.state import OAuthStateManager
from signon.config import Credential

logger = logging.getLogger(__name__)


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_state_manager(request: Request) -> OAuthStateManager:
    return request.app.state.state_manager


def get_provider_registry(request: Request) -> ProviderRegistry:
    return request.app.state.providers


def get_credentials(request: Request) -> list[Credential]:
    return request.app.state.credentials


async def require_session(
    request: Request,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> str:
    """
    Require a valid session cookie.
    Stores the user ID on ``request.state.user_id`` and returns it. A
    ``SessionError`` propagates to the app's handler, which answers 401 and
    expires the stale cookie.
    """
    try:
        user_id = session_manager.validate_session(request)
    except SessionError as e:
        logger.debug(f"Rejected session on {request.url.path}: {e}")
        raise
    request.state.user_id = user_id
    return user_id


def get_user_id(request: Request) -> str | None:
    """The authenticated user ID for this request, if ``require_session`` ran."""
    return getattr(request.state, "user_id", None)


# Type aliases for dependency injection
SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]
StateManagerDep = Annotated[OAuthStateManager, Depends(get_state_manager)]
ProviderRegistryDep = Annotated[ProviderRegistry, Depends(get_provider_registry)]
CredentialsDep = Annotated[list[Credential], Depends(get_credentials)]
AuthenticatedUserID = Annotated[str, Depends(require_session)]
