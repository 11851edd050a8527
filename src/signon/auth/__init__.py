"""Authentication module for the signon service."""

from signon.auth.models import OAuthToken, OAuthUserInfo, DiscoveryDocument, SessionClaims
from signon.auth.password import hash_password, verify_password
from signon.auth.session import SessionManager
from signon.auth.state import OAuthStateManager
from signon.auth.oauth import OAuthProvider, ProviderRegistry, create_provider
from signon.auth.github import GitHubProvider
from signon.auth.oidc import OIDCProvider
from signon.auth.allowlist import enforce, is_allowed
from signon.auth.middleware import require_session, AuthenticatedUserID
from signon.auth.routes import router as auth_router, api_router

__all__ = [
    # Models
    "OAuthToken",
    "OAuthUserInfo",
    "DiscoveryDocument",
    "SessionClaims",
    # Passwords
    "hash_password",
    "verify_password",
    # Session and state
    "SessionManager",
    "OAuthStateManager",
    # Providers
    "OAuthProvider",
    "ProviderRegistry",
    "create_provider",
    "GitHubProvider",
    "OIDCProvider",
    "is_allowed",
    "enforce",
    # Middleware
    "require_session",
    "AuthenticatedUserID",
    # Routes
    "auth_router",
    "api_router",
]
