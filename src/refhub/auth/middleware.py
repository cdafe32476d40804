"""Authentication dependencies for FastAPI."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from refhub.auth.local import LocalAuthService
from refhub.errors import UnauthenticatedError
from refhub.logging_config import get_logger
from refhub.settings import settings

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> LocalAuthService:
    return request.app.state.auth_service


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    """Bearer header wins over the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth_service: LocalAuthService = Depends(get_auth_service),
) -> int:
    """Resolve the caller's user ID from the session token.

    Raises:
        UnauthenticatedError: No token on the request (401 "No token provided")
        InvalidTokenError: Malformed or expired token (401 "Invalid token")
    """
    token = extract_token(request, credentials)
    if not token:
        raise UnauthenticatedError()

    user_id = auth_service.verify_session_token(token)

    # Store user in request state for later use
    request.state.user_id = user_id
    return user_id
