"""Authentication error hierarchy.

Each family maps to exactly one user-facing outcome (see ``signon.auth.routes``
and the exception handlers in ``signon.main``); the concrete subclass is only
ever logged server-side.
"""


class AuthError(Exception):
    """Base class for all authentication failures."""


class CredentialError(AuthError):
    """Unknown user or wrong password. Never says which."""

    def __init__(self, message: str = "invalid credentials"):
        super().__init__(message)


# Sessions

class SessionError(AuthError):
    """The session cookie is missing, invalid, expired or empty."""


class NoSessionError(SessionError):
    pass


class InvalidSessionError(SessionError):
    """Signature mismatch, foreign secret or malformed cookie."""


class SessionExpiredError(SessionError):
    pass


class EmptyIdentityError(SessionError):
    pass


class SessionEncodingError(SessionError):
    """The session payload could not be signed."""


# OAuth state (anti-CSRF)

class CSRFStateError(AuthError):
    """The OAuth state round-trip failed validation."""


class MissingStateCookieError(CSRFStateError):
    pass


class StateMismatchError(CSRFStateError):
    pass


class InvalidStateEncodingError(CSRFStateError):
    pass


class InvalidStateLengthError(CSRFStateError):
    pass


class InvalidStateSignatureError(CSRFStateError):
    pass


class StateExpiredError(CSRFStateError):
    pass


# Identity providers

class ProviderError(AuthError):
    """A call to an identity provider failed.

    ``status_code`` is ``None`` for transport failures and malformed payloads.
    ``body`` is the (truncated) response body when one was received.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.detail = message
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message}: status={status_code}, body={body}"
        super().__init__(message)


class DiscoveryError(ProviderError):
    pass


class ExchangeError(ProviderError):
    pass


class UserInfoError(ProviderError):
    pass


class AllowlistDenied(AuthError):
    """Authenticated by the provider but not permitted by the allowlist."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"user {username!r} is not allowed")
