"""Signed-cookie session management.

The cookie is the only session store: an HS256 JWT over ``{sub, iat, exp}``
signed with the deployment secret. Nothing is kept server-side.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from jose import jwt, JWTError
from pydantic import ValidationError

from signon.auth.errors import (
    EmptyIdentityError,
    InvalidSessionError,
    NoSessionError,
    SessionEncodingError,
    SessionExpiredError,
)
from signon.auth.models import SessionClaims

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 24 * 60 * 60
SESSION_ALGORITHM = "HS256"


class SessionManager:
    """Issues and validates the signed session cookie."""

    def __init__(
        self,
        secret: str,
        cookie_name: str = "app_session",
        secure: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("session secret must not be empty")
        self._secret = secret
        self.cookie_name = cookie_name
        self.secure = secure
        self._clock = clock

    def encode(self, user_id: str) -> str:
        """Sign a session for ``user_id`` and return the cookie value."""
        now = int(self._clock())
        claims = SessionClaims(sub=user_id, iat=now, exp=now + SESSION_TTL_SECONDS)
        try:
            return jwt.encode(claims.model_dump(), self._secret, algorithm=SESSION_ALGORITHM)
        except (JWTError, TypeError, ValueError) as e:
            raise SessionEncodingError(f"encoding session payload: {e}") from e

    def decode(self, value: str) -> str:
        """Verify a cookie value and return the user ID it carries."""
        try:
            payload = jwt.decode(
                value,
                self._secret,
                algorithms=[SESSION_ALGORITHM],
                options={"verify_exp": False},
            )
            claims = SessionClaims(**payload)
        except JWTError as e:
            raise InvalidSessionError(f"invalid session: {e}") from e
        except ValidationError as e:
            raise InvalidSessionError("invalid session payload") from e

        # Expiry is checked against the injected clock rather than jose's wall clock.
        if self._clock() > claims.exp:
            raise SessionExpiredError("session expired")
        if not claims.user_id:
            raise EmptyIdentityError("session carries an empty identity")
        return claims.user_id

    def create_session(self, response: Response, user_id: str) -> None:
        """Set a signed session cookie on the response."""
        value = self.encode(user_id)
        response.set_cookie(
            key=self.cookie_name,
            value=value,
            max_age=SESSION_TTL_SECONDS,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
        logger.info(f"Created session for user {user_id}")

    def validate_session(self, request: Request) -> str:
        """Read and validate the session cookie, returning the user ID."""
        value = request.cookies.get(self.cookie_name)
        if not value:
            raise NoSessionError("no session cookie")
        return self.decode(value)

    def clear_session(self, request: Request, response: Response) -> str:
        """Load the current session, then expire its cookie.

        Raises a ``SessionError`` when the existing session cannot be loaded;
        use ``expire_cookie`` to clear an undecodable cookie.
        """
        user_id = self.validate_session(request)
        self.expire_cookie(response)
        logger.info(f"Cleared session for user {user_id}")
        return user_id

    def expire_cookie(self, response: Response) -> None:
        """Unconditionally overwrite the session cookie with an expired one."""
        response.delete_cookie(
            key=self.cookie_name,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
