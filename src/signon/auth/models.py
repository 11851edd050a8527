"""Authentication data models."""

from pydantic import BaseModel, Field


class SessionClaims(BaseModel):
    """Claims carried inside the signed session cookie."""

    sub: str = Field(..., description="Subject (user ID)")
    iat: int = Field(..., description="Issued at timestamp")
    exp: int = Field(..., description="Expiration timestamp")

    @property
    def user_id(self) -> str:
        return self.sub


class OAuthToken(BaseModel):
    """Token endpoint response from the authorization-code exchange."""

    access_token: str
    token_type: str = "bearer"
    scope: str | None = None
    expires_in: int | None = None


class OAuthUserInfo(BaseModel):
    """Identity normalized from a provider's user API."""

    id: str
    username: str
    email: str | None = None
    orgs: list[str] = Field(default_factory=list)


class DiscoveryDocument(BaseModel):
    """The subset of an OIDC discovery document this service uses."""

    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str


class LoginRequest(BaseModel):
    """Password login submission."""

    user_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Response after successful login."""

    user_id: str


class OAuthProviderInfo(BaseModel):
    provider: str
    name: str
    url: str


class AuthInfoResponse(BaseModel):
    """Available authentication methods."""

    password_enabled: bool
    oauth_providers: list[OAuthProviderInfo] = Field(default_factory=list)


class AuthErrorResponse(BaseModel):
    """Authentication error response."""

    error: str
