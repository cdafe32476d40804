"""Main FastAPI application for RefHub API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from refhub import __version__
from refhub.api.csrf import CSRFMiddleware, router as csrf_router
from refhub.api.rate_limit import limiter
from refhub.api.routes.auth import router as auth_router
from refhub.api.routes.referral import router as referral_router
from refhub.api.routes.rewards import router as rewards_router
from refhub.auth.local import LocalAuthService
from refhub.cache.response_cache import ResponseCache
from refhub.email.service import EmailService
from refhub.errors import (
    DuplicateReferralError,
    DuplicateUserError,
    InvalidResetTokenError,
    InvalidTokenError,
    RefHubError,
    UnauthenticatedError,
    ValidationError,
)
from refhub.logging_config import configure_logging, get_logger
from refhub.referral.codes import ReferralCodeGenerator
from refhub.referral.ledger import ReferralLedger
from refhub.referral.pipeline import AttributionPipeline
from refhub.rewards.ledger import RewardLedger
from refhub.settings import settings
from refhub.storage.db import Database

logger = get_logger(__name__)

# Status codes for domain errors; anything else is a 500
ERROR_STATUS = {
    DuplicateUserError: 409,
    DuplicateReferralError: 409,
    UnauthenticatedError: 401,
    InvalidTokenError: 401,
    InvalidResetTokenError: 400,
    ValidationError: 400,
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'none'"

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


def _status_for(exc: RefHubError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def register_exception_handlers(app: FastAPI) -> None:
    """Translate errors into ``{"message": ...}`` JSON bodies."""

    @app.exception_handler(RefHubError)
    async def refhub_error_handler(request: Request, exc: RefHubError):
        status_code = _status_for(exc)
        if status_code < 500:
            return JSONResponse(status_code=status_code, content={"message": exc.message})

        logger.error(
            "request_failed",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        content = {"message": "Internal server error"}
        if settings.env == "development":
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part != "body"),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"message": "Validation failed", "errors": errors},
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("rate_limit_exceeded", path=request.url.path)
        return JSONResponse(
            status_code=429,
            content={"message": "Too many requests from this IP, please try again later"},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()
    logger.info("app_starting", env=settings.env)

    app.state.db.create_tables()
    logger.info("database_tables_created")

    yield

    logger.info("app_shutting_down")
    app.state.db.dispose()


def create_app(
    database: Database | None = None,
    email_service: EmailService | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        database: Database to use (defaults to one built from settings)
        email_service: Notifier for welcome and reset emails

    Returns:
        Configured FastAPI app
    """
    is_production = settings.is_production

    app = FastAPI(
        title="RefHub API",
        description="Referral and reward tracking API",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    # Services
    database = database or Database()
    auth_service = LocalAuthService(database)
    cache = ResponseCache(default_ttl=settings.cache_ttl_seconds)
    referral_ledger = ReferralLedger(database, strict=settings.strict_referral_transitions)
    reward_ledger = RewardLedger(database)
    email_service = email_service or EmailService()

    app.state.db = database
    app.state.auth_service = auth_service
    app.state.cache = cache
    app.state.referral_ledger = referral_ledger
    app.state.reward_ledger = reward_ledger
    app.state.email_service = email_service
    app.state.pipeline = AttributionPipeline(
        auth_service=auth_service,
        code_generator=ReferralCodeGenerator(
            auth_service.referral_code_exists,
            length=settings.referral_code_length,
            max_attempts=settings.referral_code_max_attempts,
        ),
        referral_ledger=referral_ledger,
        reward_ledger=reward_ledger,
        cache=cache,
        notifier=email_service,
        reward_amount=settings.referral_reward_amount,
    )

    # Middleware: the last one added runs first
    app.add_middleware(CSRFMiddleware, enabled=settings.csrf_enabled)
    app.add_middleware(SecurityHeadersMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    # Credentials cannot be combined with a wildcard origin
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-CSRF-Token"],
        max_age=3600,
    )

    app.state.limiter = limiter
    register_exception_handlers(app)

    app.include_router(csrf_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")
    app.include_router(referral_router, prefix="/api")
    app.include_router(rewards_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


# Create app instance
app = create_app()
