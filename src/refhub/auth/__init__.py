"""Authentication: accounts, password hashing and session tokens."""

from refhub.auth.local import LocalAuthService
from refhub.auth.middleware import get_current_user_id
from refhub.auth.models import RegisteredUser, UserAccount, UserSummary

__all__ = [
    "LocalAuthService",
    "RegisteredUser",
    "UserAccount",
    "UserSummary",
    "get_current_user_id",
]
