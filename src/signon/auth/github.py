"""GitHub (and GitHub Enterprise) OAuth provider."""

import logging

import httpx

from signon.config import OAuthProviderConfig
from signon.auth.errors import UserInfoError
from signon.auth.models import OAuthToken, OAuthUserInfo
from signon.auth.oauth import DEFAULT_TIMEOUT_S, OAuthProvider

logger = logging.getLogger(__name__)

GITHUB_URL = "https://github.com"
GITHUB_API_URL = "https://api.github.com"


class GitHubProvider(OAuthProvider):
    """OAuth app login against github.com or a GitHub Enterprise server."""

    default_scopes = ("read:user", "read:org")

    def __init__(
        self,
        config: OAuthProviderConfig,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config, timeout=timeout, transport=transport)
        if config.base_url:
            base = config.base_url.rstrip("/")
            web_url, api_url = base, f"{base}/api/v3"
        else:
            web_url, api_url = GITHUB_URL, GITHUB_API_URL

        self.authorize_url = f"{web_url}/login/oauth/authorize"
        self.token_url = f"{web_url}/login/oauth/access_token"
        self.user_url = f"{api_url}/user"
        self.orgs_url = f"{api_url}/user/orgs"

    @property
    def name(self) -> str:
        return "GitHub"

    async def auth_code_url(self, state: str) -> str:
        return self.build_auth_code_url(self.authorize_url, state)

    async def exchange(self, code: str) -> OAuthToken:
        return await self.exchange_code(self.token_url, code)

    async def user_info(self, token: OAuthToken) -> OAuthUserInfo:
        user = await self.get_json(self.user_url, token, UserInfoError, "github user")
        if not isinstance(user, dict) or not user.get("login") or user.get("id") is None:
            raise UserInfoError("github user response is missing login or id")

        info = OAuthUserInfo(
            id=str(user["id"]),
            username=user["login"],
            email=user.get("email") or None,
        )

        # Org membership costs an extra API call; only fetch it when it can matter.
        if self.config.allowed_orgs:
            info.orgs = await self.fetch_orgs(token)

        return info

    async def fetch_orgs(self, token: OAuthToken) -> list[str]:
        orgs = await self.get_json(self.orgs_url, token, UserInfoError, "github orgs")
        if not isinstance(orgs, list):
            raise UserInfoError("github orgs response is not a list")
        return [o["login"] for o in orgs if isinstance(o, dict) and o.get("login")]
