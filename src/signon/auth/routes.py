"""Authentication routes: password login, OAuth login/callback and logout."""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from signon.auth.allowlist import enforce
from signon.auth.errors import (
    AllowlistDenied,
    CredentialError,
    CSRFStateError,
    ProviderError,
    SessionEncodingError,
    SessionError,
)
from signon.auth.middleware import (
    AuthenticatedUserID,
    CredentialsDep,
    ProviderRegistryDep,
    SessionManagerDep,
    StateManagerDep,
)
from signon.auth.models import (
    AuthErrorResponse,
    AuthInfoResponse,
    LoginRequest,
    LoginResponse,
    OAuthProviderInfo,
)
from signon.auth.password import verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])
api_router = APIRouter(prefix="/api", tags=["authentication"])

# Values of the ?error= parameter on the post-login redirect.
ERROR_OAUTH_FAILED = "oauth_failed"
ERROR_UNKNOWN_PROVIDER = "unknown_provider"
ERROR_ACCESS_DENIED = "access_denied"
ERROR_SESSION_FAILED = "session_failed"

UNAUTHORIZED_RESPONSES = {401: {"model": AuthErrorResponse}}
LOGIN_RESPONSES = {400: {"model": AuthErrorResponse}, **UNAUTHORIZED_RESPONSES}


def _redirect(url: str = "/") -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def _redirect_error(response: RedirectResponse, code: str) -> RedirectResponse:
    # Keep the same response object so cookies already set on it survive.
    response.headers["location"] = f"/?error={code}"
    return response


# =============================================================================
# Password login
# =============================================================================

@api_router.post("/login", response_model=LoginResponse, responses=LOGIN_RESPONSES)
async def login(
    body: LoginRequest,
    response: Response,
    credentials: CredentialsDep,
    session_manager: SessionManagerDep,
):
    """Verify a user ID and password and start a session."""
    credential = next((c for c in credentials if c.user_id == body.user_id), None)

    if credential is None or not await run_in_threadpool(
        verify_password, body.password, credential.password_hash
    ):
        logger.warning(f"Password login failed for {body.user_id!r}")
        raise CredentialError()

    try:
        session_manager.create_session(response, credential.user_id)
    except SessionEncodingError as e:
        logger.error(f"Session creation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="session creation failed",
        )

    logger.info(f"User {credential.user_id} logged in with password")
    return LoginResponse(user_id=credential.user_id)


@api_router.get("/auth-info", response_model=AuthInfoResponse)
async def auth_info(credentials: CredentialsDep, providers: ProviderRegistryDep):
    """Describe the login methods this server offers."""
    return AuthInfoResponse(
        password_enabled=bool(credentials),
        oauth_providers=[
            OAuthProviderInfo(provider=kind, name=provider.name, url=f"/auth/{kind}")
            for kind, provider in providers
        ],
    )


@api_router.get("/me", response_model=LoginResponse, responses=UNAUTHORIZED_RESPONSES)
async def get_current_user(user_id: AuthenticatedUserID):
    """Get the user ID of the current session."""
    return LoginResponse(user_id=user_id)


# =============================================================================
# OAuth login flow
# =============================================================================

@router.api_route("/logout", methods=["GET", "POST"])
async def logout(request: Request, session_manager: SessionManagerDep):
    """Log out the current user by clearing the session."""
    response = _redirect("/")
    try:
        user_id = session_manager.clear_session(request, response)
        logger.info(f"User {user_id} logged out")
    except SessionError as e:
        logger.info(f"Logout without a valid session: {e}")
        session_manager.expire_cookie(response)
    return response


@router.get("/{provider}")
async def begin_auth(
    provider: str,
    providers: ProviderRegistryDep,
    state_manager: StateManagerDep,
):
    """
    Initiate the OAuth login flow.
    Redirects to the identity provider with a signed state parameter.
    """
    oauth_provider = providers.get(provider)
    if oauth_provider is None:
        logger.warning(f"OAuth login requested for unknown provider {provider!r}")
        return _redirect(f"/?error={ERROR_UNKNOWN_PROVIDER}")

    response = _redirect("/")
    state = state_manager.generate(response)

    try:
        auth_url = await oauth_provider.auth_code_url(state)
    except ProviderError as e:
        logger.error(f"Failed to build {provider} authorization URL: {e}")
        return _redirect(f"/?error={ERROR_OAUTH_FAILED}")

    response.headers["location"] = auth_url
    return response


@router.get("/{provider}/callback")
async def auth_callback(
    request: Request,
    provider: str,
    providers: ProviderRegistryDep,
    state_manager: StateManagerDep,
    session_manager: SessionManagerDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """
    OAuth callback handler.
    Validates state, exchanges the code, applies the allowlist and creates
    the session.
    """
    response = _redirect("/")

    oauth_provider = providers.get(provider)
    if oauth_provider is None:
        logger.warning(f"OAuth callback for unknown provider {provider!r}")
        return _redirect_error(response, ERROR_UNKNOWN_PROVIDER)

    # Validate state (CSRF protection); this also consumes the state cookie
    try:
        state_manager.validate(request, response, state)
    except CSRFStateError as e:
        logger.warning(f"OAuth state validation failed for {provider}: {type(e).__name__}: {e}")
        return _redirect_error(response, ERROR_OAUTH_FAILED)

    # Handle error response from IdP
    if error:
        logger.error(f"OAuth error from {provider}: {error} - {error_description}")
        return _redirect_error(response, ERROR_OAUTH_FAILED)

    if not code:
        logger.warning(f"OAuth callback for {provider} without authorization code")
        return _redirect_error(response, ERROR_OAUTH_FAILED)

    try:
        token = await oauth_provider.exchange(code)
        info = await oauth_provider.user_info(token)
    except ProviderError as e:
        logger.error(f"OAuth login via {provider} failed: {type(e).__name__}: {e}")
        return _redirect_error(response, ERROR_OAUTH_FAILED)

    try:
        enforce(oauth_provider.config, info)
    except AllowlistDenied as e:
        logger.warning(f"OAuth login via {provider} denied: {e}")
        return _redirect_error(response, ERROR_ACCESS_DENIED)

    user_id = info.username or info.id
    try:
        session_manager.create_session(response, user_id)
    except SessionError as e:
        logger.error(f"Session creation failed for {user_id}: {e}")
        return _redirect_error(response, ERROR_SESSION_FAILED)

    logger.info(f"User {user_id} logged in via {oauth_provider.name}")
    return response
