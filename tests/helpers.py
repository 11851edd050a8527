"""
Test helpers: request/cookie utilities, config builders and fake identity providers.

Identity providers are faked with ``httpx.MockTransport`` handlers that mimic
the small set of GitHub and OIDC endpoints the providers call. Each stub
records the requests it served so tests can assert on call counts.
"""

from __future__ import annotations

import asyncio
from http.cookies import SimpleCookie
from urllib.parse import parse_qs

import httpx
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import Response

from signon.auth.password import hash_password
from signon.config import Credential, OAuthProviderConfig, Settings
from signon.main import create_app

SECRET = "test-secret-that-is-at-least-32-bytes-long!"
GHE_URL = "https://ghe.example.com"
ISSUER_URL = "https://idp.example.com"

ALICE_PASSWORD = "correct horse battery staple"
ALICE_HASH = hash_password(ALICE_PASSWORD)


# ---------------------------------------------------------------------------
# Request / response helpers
# ---------------------------------------------------------------------------


def make_request(cookies: dict[str, str] | None = None) -> Request:
    """Build a bare Starlette request carrying the given cookies."""
    headers = []
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", cookie_header.encode("latin-1")))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "query_string": b""})


def set_cookies(response: Response | httpx.Response) -> SimpleCookie:
    """Parse every Set-Cookie header on a response."""
    jar = SimpleCookie()
    get_list = getattr(response.headers, "get_list", None) or response.headers.getlist
    for header in get_list("set-cookie"):
        jar.load(header)
    return jar


# ---------------------------------------------------------------------------
# Fake identity providers
# ---------------------------------------------------------------------------


class FakeGitHub:
    """Minimal GitHub OAuth + REST API stub (Enterprise-style URLs)."""

    def __init__(self, login: str = "dummyuser", orgs: list[str] | None = None):
        self.login = login
        self.orgs = orgs if orgs is not None else ["dummy-org"]
        self.requests: list[httpx.Request] = []
        self.token_status = 200

    def hits(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/login/oauth/access_token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="token endpoint exploded")
            form = parse_qs(request.content.decode())
            if form.get("code") != ["dummy-auth-code"]:
                return httpx.Response(200, json={"error": "bad_verification_code"})
            return httpx.Response(
                200,
                json={"access_token": "dummy-access-token", "token_type": "bearer", "scope": "read:user,read:org"},
            )

        if request.headers.get("Authorization") != "Bearer dummy-access-token":
            return httpx.Response(401, json={"message": "Bad credentials"})

        if path == "/api/v3/user":
            return httpx.Response(
                200,
                json={"login": self.login, "id": 12345, "name": "Dummy User", "email": "dummy@example.com"},
            )
        if path == "/api/v3/user/orgs":
            return httpx.Response(200, json=[{"login": o, "id": i} for i, o in enumerate(self.orgs)])

        return httpx.Response(404, json={"message": "Not Found"})


class FakeOIDC:
    """Minimal OIDC issuer stub. Discovery responses can be slowed down."""

    def __init__(self, issuer: str = ISSUER_URL, userinfo: dict | None = None):
        self.issuer = issuer
        self.userinfo = userinfo or {
            "sub": "oidc-sub-1",
            "preferred_username": "oidc-user",
            "email": "oidc-user@example.com",
            "name": "OIDC User",
        }
        self.requests: list[httpx.Request] = []
        self.discovery_status = 200
        self.discovery_delay = 0.0

    @property
    def discovery_hits(self) -> int:
        return sum(1 for r in self.requests if r.url.path == "/.well-known/openid-configuration")

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/.well-known/openid-configuration":
            if self.discovery_delay:
                await asyncio.sleep(self.discovery_delay)
            if self.discovery_status != 200:
                return httpx.Response(self.discovery_status, text="discovery unavailable")
            return httpx.Response(
                200,
                json={
                    "issuer": self.issuer,
                    "authorization_endpoint": f"{self.issuer}/authorize",
                    "token_endpoint": f"{self.issuer}/token",
                    "userinfo_endpoint": f"{self.issuer}/userinfo",
                    "jwks_uri": f"{self.issuer}/jwks",
                },
            )
        if request.method == "POST" and path == "/token":
            return httpx.Response(200, json={"access_token": "oidc-access-token", "token_type": "Bearer", "expires_in": 3600})
        if path == "/userinfo":
            if request.headers.get("Authorization") != "Bearer oidc-access-token":
                return httpx.Response(401, text="invalid token")
            return httpx.Response(200, json=self.userinfo)

        return httpx.Response(404, text="not found")


def github_config(**overrides) -> OAuthProviderConfig:
    values = {
        "provider": "github",
        "client_id": "dummy-client-id",
        "client_secret": "dummy-client-secret",
        "redirect_url": "http://testserver/auth/github/callback",
        "base_url": GHE_URL,
    }
    values.update(overrides)
    return OAuthProviderConfig(**values)


def oidc_config(**overrides) -> OAuthProviderConfig:
    values = {
        "provider": "oidc",
        "client_id": "oidc-client-id",
        "client_secret": "oidc-client-secret",
        "redirect_url": "http://testserver/auth/oidc/callback",
        "issuer_url": ISSUER_URL + "/",
    }
    values.update(overrides)
    return OAuthProviderConfig(**values)


def make_settings(**overrides) -> Settings:
    values = {
        "session_secret_key": SECRET,
        "users": [Credential(user_id="alice", password_hash=ALICE_HASH)],
        "oauth_providers": [github_config()],
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(settings: Settings, handler) -> TestClient:
    app = create_app(settings, transport=httpx.MockTransport(handler))
    return TestClient(app, follow_redirects=False)

