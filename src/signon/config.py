"""Configuration management for the signon service."""

import json
import logging
from functools import lru_cache

import boto3
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("github", "google", "oidc")


def _split_csv(v: str | list[str] | None) -> list[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class Credential(BaseModel):
    """A password login entry. The hash is set administratively."""

    user_id: str = Field(..., min_length=1)
    password_hash: str


class OAuthProviderConfig(BaseModel):
    """Settings for a single OAuth/OIDC provider."""

    model_config = {"frozen": True}

    provider: str = Field(..., description="Provider kind: github, google or oidc")
    client_id: str = ""
    client_secret: str = ""
    redirect_url: str = ""
    issuer_url: str | None = Field(None, description="OIDC issuer (oidc/google only)")
    base_url: str | None = Field(None, description="GitHub Enterprise base URL")
    scopes: list[str] = Field(default_factory=list)
    allowed_users: list[str] = Field(default_factory=list)
    allowed_orgs: list[str] = Field(default_factory=list)

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("scopes", "allowed_users", "allowed_orgs", mode="before")
    @classmethod
    def parse_lists(cls, v: str | list[str] | None) -> list[str]:
        return _split_csv(v)


def get_aws_secrets(secret_id: str, region_name: str) -> dict:
    """Fetch secrets from AWS Secrets Manager."""
    try:
        session = boto3.session.Session()
        client = session.client(
            service_name="secretsmanager",
            region_name=region_name,
        )
        response = client.get_secret_value(SecretId=secret_id)
        secrets = json.loads(response["SecretString"])
        if not isinstance(secrets, dict):
            raise ValueError("secret payload is not a JSON object")
        return secrets
    except Exception as e:
        logger.warning(f"Failed to fetch AWS secrets: {e}. Falling back to environment variables.")
        return {}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and AWS Secrets Manager."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Session Configuration
    session_secret_key: str = Field(default="", description="Secret key for session and state signing")
    session_cookie_name: str = Field(default="app_session")
    cookie_secure: bool | None = Field(default=None, description="Defaults to True in production")

    # Password logins
    users: list[Credential] = Field(default_factory=list)

    # OAuth providers
    oauth_providers: list[OAuthProviderConfig] = Field(default_factory=list)
    http_timeout_s: float = Field(default=10.0)
    discovery_retry_after_s: float | None = Field(
        default=None,
        description="Seconds before a failed OIDC discovery may be retried; unset caches the failure",
    )

    # Optional AWS Secrets Manager source
    use_secrets_manager: bool = Field(default=False)
    secrets_manager_secret_id: str = Field(default="signon")
    aws_region: str = Field(default="us-east-2")

    # Server Configuration
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)
    server_env: str = Field(default="development")

    # CORS Configuration
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @model_validator(mode="after")
    def apply_secrets_manager(self) -> "Settings":
        if not self.use_secrets_manager:
            return self

        secrets = get_aws_secrets(self.secrets_manager_secret_id, self.aws_region)
        if not self.session_secret_key and secrets.get("session_secret_key"):
            self.session_secret_key = secrets["session_secret_key"]

        providers = []
        for p in self.oauth_providers:
            key = f"oauth_{p.provider}_client_secret"
            if not p.client_secret and secrets.get(key):
                p = p.model_copy(update={"client_secret": secrets[key]})
            providers.append(p)
        self.oauth_providers = providers
        return self

    @model_validator(mode="after")
    def validate_auth(self) -> "Settings":
        if not self.session_secret_key:
            raise ValueError("session_secret_key must be set")
        if len(self.session_secret_key) < 32:
            logger.warning("session_secret_key is shorter than 32 characters")

        seen: set[str] = set()
        for i, p in enumerate(self.oauth_providers):
            if p.provider not in SUPPORTED_PROVIDERS:
                raise ValueError(f"oauth_providers[{i}]: unsupported provider {p.provider!r}")
            if not p.client_id:
                raise ValueError(f"oauth_providers[{i}]: client_id is required")
            if not p.client_secret:
                raise ValueError(f"oauth_providers[{i}]: client_secret is required")
            if p.provider == "oidc" and not p.issuer_url:
                raise ValueError(f"oauth_providers[{i}]: issuer_url is required for oidc")
            if p.provider in seen:
                raise ValueError(f"oauth_providers[{i}]: duplicate provider {p.provider!r}")
            seen.add(p.provider)
        return self

    @property
    def is_production(self) -> bool:
        return self.server_env.lower() == "production"

    @property
    def secure_cookies(self) -> bool:
        if self.cookie_secure is None:
            return self.is_production
        return self.cookie_secure


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
