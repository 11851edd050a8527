"""Main FastAPI application for the signon service."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from signon import __version__
from signon.auth.errors import CredentialError, SessionError
from signon.auth.oauth import ProviderRegistry
from signon.auth.routes import api_router, router as auth_router
from signon.auth.session import SessionManager
from signon.auth.state import OAuthStateManager
from signon.config import Settings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("Starting signon server...")
    logger.info(f"Password login: {'enabled' if settings.users else 'disabled'}")
    for kind, provider in app.state.providers:
        logger.info(f"OAuth provider {kind} ({provider.name}) redirect URI: {provider.config.redirect_url}")

    yield

    logger.info("Shutting down signon server...")


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application from settings.

    ``transport`` is passed to every provider HTTP client (tests use
    ``httpx.MockTransport``).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="signon",
        description="Password and OAuth/OIDC login with signed-cookie sessions",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.credentials = list(settings.users)
    app.state.session_manager = SessionManager(
        settings.session_secret_key,
        cookie_name=settings.session_cookie_name,
        secure=settings.secure_cookies,
    )
    app.state.state_manager = OAuthStateManager(
        settings.session_secret_key,
        secure=settings.secure_cookies,
    )
    app.state.providers = ProviderRegistry(
        settings.oauth_providers,
        timeout=settings.http_timeout_s,
        transport=transport,
        discovery_retry_after=settings.discovery_retry_after_s,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(auth_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "signon"}

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Custom HTTP exception handler."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies get the same error shape as every other failure."""
        fields = [".".join(str(p) for p in e["loc"]) for e in exc.errors()]
        logger.debug(f"Rejected request to {request.url.path}: invalid {fields}")
        return JSONResponse(status_code=400, content={"error": "invalid request"})

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError):
        """Reject the request and clear the stale cookie so re-login works cleanly."""
        response = JSONResponse(status_code=401, content={"error": "unauthorized"})
        request.app.state.session_manager.expire_cookie(response)
        return response

    @app.exception_handler(CredentialError)
    async def credential_error_handler(request: Request, exc: CredentialError):
        return JSONResponse(status_code=401, content={"error": "invalid credentials"})

    return app


def get_app() -> FastAPI:
    """Uvicorn factory: ``uvicorn signon.main:get_app --factory``."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("signon.main:get_app", factory=True, host=settings.server_host, port=settings.server_port)
