"""Double-submit cookie CSRF protection."""

import secrets

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from refhub.logging_config import get_logger
from refhub.settings import settings

logger = get_logger(__name__)

CSRF_COOKIE_NAME = "csrfToken"
CSRF_HEADER_NAME = "x-csrf-token"
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}

router = APIRouter(tags=["security"])


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def set_csrf_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


class CSRFMiddleware(BaseHTTPMiddleware):
    """Reject unsafe requests whose x-csrf-token header does not match the cookie.

    Every response to a client without a CSRF cookie gets a fresh one.
    """

    def __init__(self, app, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        cookie_token = request.cookies.get(CSRF_COOKIE_NAME)

        if request.method not in SAFE_METHODS:
            header_token = request.headers.get(CSRF_HEADER_NAME)
            if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
                logger.warning("csrf_validation_failed", path=request.url.path, method=request.method)
                return JSONResponse(
                    status_code=403,
                    content={"message": "CSRF token validation failed"},
                )

        response = await call_next(request)

        issued = any(v.startswith(f"{CSRF_COOKIE_NAME}=") for v in response.headers.getlist("set-cookie"))
        if not cookie_token and not issued:
            set_csrf_cookie(response, generate_csrf_token())

        return response


@router.get("/csrf-token")
async def get_csrf_token(request: Request, response: Response):
    """Return the caller's CSRF token, issuing one if needed."""
    token = request.cookies.get(CSRF_COOKIE_NAME)
    if not token:
        token = generate_csrf_token()
        set_csrf_cookie(response, token)
    return {"csrfToken": token}
