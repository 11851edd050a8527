"""Allowlist enforcement for OAuth logins."""

from signon.config import OAuthProviderConfig
from signon.auth.errors import AllowlistDenied
from signon.auth.models import OAuthUserInfo


def is_allowed(config: OAuthProviderConfig, info: OAuthUserInfo) -> bool:
    """Check whether the user passes the provider's allowlists.

    With no allowed users and no allowed orgs configured, everyone is allowed.
    """
    if not config.allowed_users and not config.allowed_orgs:
        return True

    if info.username in config.allowed_users:
        return True

    return bool(config.allowed_orgs) and not set(config.allowed_orgs).isdisjoint(info.orgs)


def enforce(config: OAuthProviderConfig, info: OAuthUserInfo) -> None:
    """Raise ``AllowlistDenied`` unless ``is_allowed`` passes."""
    if not is_allowed(config, info):
        raise AllowlistDenied(info.username)
