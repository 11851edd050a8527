"""OAuth provider abstraction and registry."""

import logging
from abc import ABC, abstractmethod
from typing import Iterator
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from signon.config import OAuthProviderConfig
from signon.auth.errors import ExchangeError, ProviderError
from signon.auth.models import OAuthToken, OAuthUserInfo

logger = logging.getLogger(__name__)

MAX_ERROR_BODY = 512
DEFAULT_TIMEOUT_S = 10.0


def truncate_body(text: str) -> str:
    if len(text) <= MAX_ERROR_BODY:
        return text
    return text[:MAX_ERROR_BODY] + "..."


class OAuthProvider(ABC):
    """Authorization-code flow against a single identity provider.

    ``transport`` is handed to every ``httpx.AsyncClient`` the provider opens,
    which lets tests substitute ``httpx.MockTransport``.
    """

    default_scopes: tuple[str, ...] = ()

    def __init__(
        self,
        config: OAuthProviderConfig,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name shown on the login page."""

    @property
    def scopes(self) -> list[str]:
        return list(self.config.scopes) or list(self.default_scopes)

    @abstractmethod
    async def auth_code_url(self, state: str) -> str:
        """URL the browser is redirected to for authentication."""

    @abstractmethod
    async def exchange(self, code: str) -> OAuthToken:
        """Exchange an authorization code for an access token."""

    @abstractmethod
    async def user_info(self, token: OAuthToken) -> OAuthUserInfo:
        """Fetch the authenticated user's normalized identity."""

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    def build_auth_code_url(self, authorization_endpoint: str, state: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_url,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        separator = "&" if "?" in authorization_endpoint else "?"
        return f"{authorization_endpoint}{separator}{urlencode(params)}"

    async def exchange_code(self, token_endpoint: str, code: str) -> OAuthToken:
        """POST the authorization code to ``token_endpoint``."""
        data = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
            "redirect_uri": self.config.redirect_url,
            "grant_type": "authorization_code",
        }

        async with self.http_client() as client:
            try:
                resp = await client.post(
                    token_endpoint,
                    data=data,
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                raise ExchangeError(f"{self.name} token request failed: {e}") from e

        if not resp.is_success:
            raise ExchangeError(
                f"{self.name} token endpoint returned an error",
                status_code=resp.status_code,
                body=truncate_body(resp.text),
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise ExchangeError(f"{self.name} token endpoint returned non-JSON body") from e

        if not isinstance(payload, dict):
            raise ExchangeError(f"{self.name} token endpoint returned an unexpected payload")
        # GitHub reports bad codes with a 200 and an "error" field.
        if payload.get("error"):
            raise ExchangeError(
                f"{self.name} token exchange failed: {payload['error']} - {payload.get('error_description', '')}"
            )

        try:
            return OAuthToken(**payload)
        except ValidationError as e:
            raise ExchangeError(f"{self.name} token response missing access_token") from e

    async def get_json(self, url: str, token: OAuthToken, error_cls: type[ProviderError], what: str):
        """GET ``url`` with the bearer token and decode the JSON body."""
        headers = {
            "Authorization": f"Bearer {token.access_token}",
            "Accept": "application/json",
        }
        async with self.http_client() as client:
            try:
                resp = await client.get(url, headers=headers)
            except httpx.HTTPError as e:
                raise error_cls(f"fetching {what}: {e}") from e

        if not resp.is_success:
            raise error_cls(
                f"{what} returned an error",
                status_code=resp.status_code,
                body=truncate_body(resp.text),
            )

        try:
            return resp.json()
        except ValueError as e:
            raise error_cls(f"decoding {what}: {e}") from e


def create_provider(
    config: OAuthProviderConfig,
    timeout: float = DEFAULT_TIMEOUT_S,
    transport: httpx.AsyncBaseTransport | None = None,
    discovery_retry_after: float | None = None,
) -> OAuthProvider:
    """Create the provider variant matching ``config.provider``."""
    from signon.auth.github import GitHubProvider
    from signon.auth.oidc import GOOGLE_ISSUER, OIDCProvider

    if config.provider == "github":
        return GitHubProvider(config, timeout=timeout, transport=transport)
    if config.provider == "google":
        return OIDCProvider(
            config,
            issuer_url=config.issuer_url or GOOGLE_ISSUER,
            timeout=timeout,
            transport=transport,
            discovery_retry_after=discovery_retry_after,
        )
    if config.provider == "oidc":
        if not config.issuer_url:
            raise ValueError("oidc provider requires issuer_url")
        return OIDCProvider(
            config,
            issuer_url=config.issuer_url,
            timeout=timeout,
            transport=transport,
            discovery_retry_after=discovery_retry_after,
        )
    raise ValueError(f"unsupported oauth provider: {config.provider!r}")


class ProviderRegistry:
    """The configured providers, keyed by provider kind.

    Built once at startup and stored on ``app.state``.
    """

    def __init__(
        self,
        configs: list[OAuthProviderConfig],
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
        discovery_retry_after: float | None = None,
    ):
        self._providers: dict[str, OAuthProvider] = {}
        for cfg in configs:
            if cfg.provider in self._providers:
                raise ValueError(f"duplicate provider {cfg.provider!r}")
            self._providers[cfg.provider] = create_provider(
                cfg,
                timeout=timeout,
                transport=transport,
                discovery_retry_after=discovery_retry_after,
            )
            logger.info(f"Registered OAuth provider: {cfg.provider}")

    def get(self, kind: str) -> OAuthProvider | None:
        return self._providers.get(kind)

    def config_for(self, kind: str) -> OAuthProviderConfig | None:
        provider = self._providers.get(kind)
        return provider.config if provider else None

    def __iter__(self) -> Iterator[tuple[str, OAuthProvider]]:
        return iter(self._providers.items())

    def __len__(self) -> int:
        return len(self._providers)
