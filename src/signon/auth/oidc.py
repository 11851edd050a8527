"""Generic OIDC authentication provider (also used for Google)."""

import asyncio
import enum
import logging
import time
from typing import Callable

import httpx
from pydantic import ValidationError

from signon.config import OAuthProviderConfig
from signon.auth.errors import DiscoveryError, UserInfoError
from signon.auth.models import DiscoveryDocument, OAuthToken, OAuthUserInfo
from signon.auth.oauth import DEFAULT_TIMEOUT_S, OAuthProvider, truncate_body

logger = logging.getLogger(__name__)

GOOGLE_ISSUER = "https://accounts.google.com"
DISCOVERY_PATH = "/.well-known/openid-configuration"


class DiscoveryState(enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


class OIDCProvider(OAuthProvider):
    """OIDC provider whose endpoints come from the issuer's discovery document.

    Discovery is resolved lazily on first use and shared by every caller of
    this instance: concurrent first callers wait on one fetch. A failed fetch
    is cached; with ``discovery_retry_after=None`` permanently, otherwise a
    new attempt is allowed once that many seconds have passed.
    """

    default_scopes = ("openid", "profile", "email")

    def __init__(
        self,
        config: OAuthProviderConfig,
        issuer_url: str,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
        discovery_retry_after: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config, timeout=timeout, transport=transport)
        self.issuer_url = issuer_url.rstrip("/")
        self.discovery_retry_after = discovery_retry_after
        self._clock = clock

        self._lock = asyncio.Lock()
        self._state = DiscoveryState.UNRESOLVED
        self._discovery: DiscoveryDocument | None = None
        self._discovery_error: DiscoveryError | None = None
        self._failed_at: float | None = None

    @property
    def name(self) -> str:
        return "Google" if self.config.provider == "google" else "OIDC"

    @property
    def discovery_url(self) -> str:
        return f"{self.issuer_url}{DISCOVERY_PATH}"

    @property
    def discovery_state(self) -> DiscoveryState:
        return self._state

    def _failure_is_final(self) -> bool:
        if self.discovery_retry_after is None:
            return True
        return self._clock() - self._failed_at < self.discovery_retry_after

    def _cached_failure(self) -> DiscoveryError:
        err = self._discovery_error
        return DiscoveryError(err.detail, status_code=err.status_code, body=err.body)

    async def discover(self) -> DiscoveryDocument:
        """Resolve the discovery document, fetching it at most once at a time."""
        if self._state is DiscoveryState.RESOLVED:
            return self._discovery
        if self._state is DiscoveryState.FAILED and self._failure_is_final():
            raise self._cached_failure()

        async with self._lock:
            # Another caller may have finished while we waited for the lock.
            if self._state is DiscoveryState.RESOLVED:
                return self._discovery
            if self._state is DiscoveryState.FAILED and self._failure_is_final():
                raise self._cached_failure()

            self._state = DiscoveryState.RESOLVING
            try:
                doc = await self._fetch_discovery()
            except DiscoveryError as e:
                logger.error(f"OIDC discovery failed for {self.issuer_url}: {e}")
                self._state = DiscoveryState.FAILED
                # Frame-free copy; later callers each get a fresh exception.
                self._discovery_error = DiscoveryError(e.detail, status_code=e.status_code, body=e.body)
                self._failed_at = self._clock()
                raise
            else:
                self._discovery = doc
                self._discovery_error = None
                self._state = DiscoveryState.RESOLVED
                logger.info(f"Resolved OIDC discovery for {self.issuer_url}")
            finally:
                # Cancelled mid-fetch: leave it for the next caller.
                if self._state is DiscoveryState.RESOLVING:
                    self._state = DiscoveryState.UNRESOLVED
            return doc

    async def _fetch_discovery(self) -> DiscoveryDocument:
        async with self.http_client() as client:
            try:
                resp = await client.get(self.discovery_url)
            except httpx.HTTPError as e:
                raise DiscoveryError(f"fetching OIDC discovery: {e}") from e

        if not resp.is_success:
            raise DiscoveryError(
                "OIDC discovery returned an error",
                status_code=resp.status_code,
                body=truncate_body(resp.text),
            )

        try:
            return DiscoveryDocument.model_validate_json(resp.content)
        except ValidationError as e:
            raise DiscoveryError(f"decoding OIDC discovery: {e}") from e

    async def auth_code_url(self, state: str) -> str:
        doc = await self.discover()
        return self.build_auth_code_url(doc.authorization_endpoint, state)

    async def exchange(self, code: str) -> OAuthToken:
        doc = await self.discover()
        return await self.exchange_code(doc.token_endpoint, code)

    async def user_info(self, token: OAuthToken) -> OAuthUserInfo:
        doc = await self.discover()
        claims = await self.get_json(doc.userinfo_endpoint, token, UserInfoError, "OIDC userinfo")
        if not isinstance(claims, dict) or not claims.get("sub"):
            raise UserInfoError("OIDC userinfo response is missing sub")

        username = ""
        for claim in ("preferred_username", "email", "name"):
            if claims.get(claim):
                username = str(claims[claim])
                break

        return OAuthUserInfo(
            id=str(claims["sub"]),
            username=username,
            email=claims.get("email") or None,
        )
