"""Authentication endpoints: register, login, logout and password reset."""

import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from refhub.api.deps import get_cache, get_email_service, get_pipeline
from refhub.api.rate_limit import STANDARD_LIMIT, STRICT_LIMIT, limiter
from refhub.auth.local import LocalAuthService
from refhub.auth.middleware import get_auth_service, get_current_user_id
from refhub.auth.models import UserSummary
from refhub.cache.response_cache import ResponseCache
from refhub.email.service import EmailService
from refhub.logging_config import get_logger
from refhub.referral.pipeline import AttributionPipeline
from refhub.settings import settings

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset link has been sent"


# ==================== MODELS ====================


def validate_password_complexity(password: str) -> str:
    """Require at least one uppercase letter, one lowercase letter and one digit."""
    if not re.search(r'[A-Z]', password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r'[a-z]', password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r'[0-9]', password):
        raise ValueError("Password must contain at least one digit")
    return password


class RegisterRequest(BaseModel):
    """User registration request."""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8, max_length=100)
    referral_code: str | None = None

    @field_validator('username')
    @classmethod
    def strip_username(cls, v):
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v

    @field_validator('password')
    @classmethod
    def check_password_complexity(cls, v):
        return validate_password_complexity(v)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    username: str
    email: str
    referral_code: str = Field(alias="referralCode")
    message: str


class LoginRequest(BaseModel):
    """Login by email or username."""
    identifier: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator('new_password')
    @classmethod
    def check_password_complexity(cls, v):
        return validate_password_complexity(v)


class MessageResponse(BaseModel):
    message: str


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.session_expire_hours * 3600,
    )


# ==================== ENDPOINTS ====================


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(STANDARD_LIMIT)
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
    pipeline: AttributionPipeline = Depends(get_pipeline),
):
    """Register a new user, optionally with a referral code.

    An unknown referral code does not fail the registration.
    """
    user = await pipeline.register(
        email=body.email,
        username=body.username,
        password_hash=auth_service.hash_password(body.password),
        referral_code=body.referral_code,
    )

    _set_session_cookie(response, auth_service.create_access_token(user.id))

    return RegisterResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        referral_code=user.referral_code,
        message="Registration successful",
    )


@router.post("/login", response_model=UserSummary)
@limiter.limit(STANDARD_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    user = auth_service.authenticate(body.identifier, body.password)
    if not user:
        logger.warning("login_failed", identifier=body.identifier)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    _set_session_cookie(response, auth_service.create_access_token(user.id))
    logger.info("user_logged_in", user_id=user.id)
    return UserSummary.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    user_id: int = Depends(get_current_user_id),
    cache: ResponseCache = Depends(get_cache),
):
    """Clear the session cookie and drop the caller's cached reads."""
    cache.invalidate_all(user_id)
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
    logger.info("user_logged_out", user_id=user_id)
    return MessageResponse(message="Successfully logged out")


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(STRICT_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
    email_service: EmailService = Depends(get_email_service),
):
    """Email a reset link. The answer never reveals whether the email exists."""
    result = auth_service.generate_reset_token(body.email)
    if result:
        token, user = result
        try:
            await email_service.send_password_reset_email(to_email=user.email, reset_token=token)
        except Exception as e:
            logger.error("password_reset_email_failed", user_id=user.id, error=str(e))

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(STRICT_LIMIT)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
    cache: ResponseCache = Depends(get_cache),
):
    user_id = auth_service.reset_password(body.token, body.new_password)
    cache.invalidate_all(user_id)
    return MessageResponse(message="Password reset successful")
