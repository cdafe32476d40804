"""Per-IP request limits for the unauthenticated auth routes."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from refhub.settings import settings

# register and login
STANDARD_LIMIT = settings.rate_limit_standard
# forgot-password and reset-password
STRICT_LIMIT = settings.rate_limit_strict


def rate_limiting_enabled() -> bool:
    """Explicit RATE_LIMIT_ENABLED wins; otherwise only production is limited."""
    if settings.rate_limit_enabled is not None:
        return settings.rate_limit_enabled
    return settings.is_production


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=rate_limiting_enabled(),
)
