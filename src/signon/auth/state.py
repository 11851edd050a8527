"""HMAC-signed OAuth ``state`` parameter (anti-CSRF).

Token layout before encoding::

    nonce (16 bytes) | issued_at (8 bytes, big-endian unix seconds) | HMAC-SHA256 (32 bytes)

The token is URL-safe base64 without padding. The same value is stored in a
short-lived cookie and echoed back by the identity provider; a callback is
accepted only if both copies match, the HMAC verifies with the current secret
and the token is at most ten minutes old. The cookie is cleared on every
validation attempt, so a token is usable once.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
import struct
import time
from typing import Callable

from fastapi import Request, Response

from signon.auth.errors import (
    InvalidStateEncodingError,
    InvalidStateLengthError,
    InvalidStateSignatureError,
    MissingStateCookieError,
    StateExpiredError,
    StateMismatchError,
)

logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = "oauth_state"
STATE_TTL_SECONDS = 10 * 60
NONCE_LEN = 16
TIMESTAMP_LEN = 8
STATE_LEN = NONCE_LEN + TIMESTAMP_LEN + hashlib.sha256().digest_size


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


class OAuthStateManager:
    """Generates and validates signed OAuth state parameters."""

    def __init__(
        self,
        secret: str,
        secure: bool = False,
        cookie_name: str = STATE_COOKIE_NAME,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("state secret must not be empty")
        self._secret = secret.encode("utf-8")
        self.secure = secure
        self.cookie_name = cookie_name
        self._clock = clock

    def _sign(self, payload: bytes) -> bytes:
        return hmac.new(self._secret, payload, hashlib.sha256).digest()

    def generate(self, response: Response) -> str:
        """Create a state token and set it as a cookie on the response."""
        nonce = secrets.token_bytes(NONCE_LEN)
        issued_at = struct.pack(">Q", int(self._clock()))
        payload = nonce + issued_at
        state = _b64encode(payload + self._sign(payload))

        response.set_cookie(
            key=self.cookie_name,
            value=state,
            max_age=STATE_TTL_SECONDS,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
        return state

    def validate(self, request: Request, response: Response, state: str | None) -> None:
        """Check the callback ``state`` against the cookie, HMAC and age.

        Raises a ``CSRFStateError`` subclass describing the first failed check.
        """
        cookie = request.cookies.get(self.cookie_name)
        if cookie is None:
            raise MissingStateCookieError("missing state cookie")

        response.delete_cookie(
            key=self.cookie_name,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

        if state is None or not hmac.compare_digest(state.encode("utf-8"), cookie.encode("utf-8")):
            raise StateMismatchError("state mismatch")

        try:
            raw = _b64decode(state)
        except (binascii.Error, ValueError) as e:
            raise InvalidStateEncodingError("invalid state encoding") from e

        if len(raw) != STATE_LEN:
            raise InvalidStateLengthError(f"invalid state length {len(raw)}")

        payload, sig = raw[: NONCE_LEN + TIMESTAMP_LEN], raw[NONCE_LEN + TIMESTAMP_LEN :]
        if not hmac.compare_digest(sig, self._sign(payload)):
            raise InvalidStateSignatureError("invalid state signature")

        (issued_at,) = struct.unpack(">Q", payload[NONCE_LEN:])
        if self._clock() - issued_at > STATE_TTL_SECONDS:
            raise StateExpiredError("state expired")
