"""Local authentication service (email or username + password)."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from refhub.auth.models import UserAccount
from refhub.errors import (
    DuplicateUserError,
    InvalidResetTokenError,
    InvalidTokenError,
    PersistenceError,
    ReferralCodeTakenError,
)
from refhub.logging_config import get_logger
from refhub.settings import settings
from refhub.storage.db import Database

SESSION_TOKEN_TYPE = "session"
RESET_TOKEN_TYPE = "password_reset"


class LocalAuthService:
    """Account persistence, password hashing and token handling."""

    def __init__(self, database: Database):
        """Initialize auth service.

        Args:
            database: Database used for account storage
        """
        self.db = database
        self.logger = get_logger(__name__)
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.password_hash_rounds,
        )

    # ==================== PASSWORD ====================

    def _truncate_password(self, password: str) -> str:
        """Truncate password to 72 bytes (bcrypt limit)."""
        return password.encode('utf-8')[:72].decode('utf-8', errors='ignore')

    def hash_password(self, password: str) -> str:
        """Hash a password.

        Args:
            password: Plain password

        Returns:
            Hashed password
        """
        return self.pwd_context.hash(self._truncate_password(password))

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify a password against hash."""
        return self.pwd_context.verify(self._truncate_password(password), hashed)

    # ==================== USER MANAGEMENT ====================

    def find_conflict(self, email: str, username: str) -> str | None:
        """Return which identity field is already taken, if any.

        Args:
            email: Candidate email
            username: Candidate username

        Returns:
            "email", "username" or None
        """
        with self.db.session() as session:
            existing = session.query(UserAccount).filter(
                or_(UserAccount.email == email.lower(), UserAccount.username == username)
            ).first()

            if not existing:
                return None
            return "email" if existing.email == email.lower() else "username"

    def referral_code_exists(self, code: str) -> bool:
        with self.db.session() as session:
            return session.query(UserAccount.id).filter(
                UserAccount.referral_code == code
            ).first() is not None

    def create_user(
        self,
        email: str,
        username: str,
        password_hash: str,
        referral_code: str,
    ) -> UserAccount:
        """Create a new user.

        Args:
            email: User email
            username: Unique username
            password_hash: Already hashed password
            referral_code: Freshly generated referral code

        Returns:
            Created user account

        Raises:
            DuplicateUserError: If email or username already exists
            ReferralCodeTakenError: If the referral code was claimed concurrently
        """
        conflict = self.find_conflict(email, username)
        if conflict:
            raise DuplicateUserError(conflict)

        user = UserAccount(
            email=email.lower(),
            username=username,
            password_hash=password_hash,
            referral_code=referral_code,
        )
        try:
            with self.db.session() as session:
                session.add(user)
                session.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration; find out which constraint
            conflict = self.find_conflict(email, username)
            if conflict:
                raise DuplicateUserError(conflict) from e
            if self.referral_code_exists(referral_code):
                raise ReferralCodeTakenError(referral_code) from e
            raise PersistenceError("Could not create user") from e

        self.logger.info("user_created", user_id=user.id, username=username)
        return user

    def authenticate(self, identifier: str, password: str) -> UserAccount | None:
        """Authenticate a user by email or username.

        Args:
            identifier: Email or username
            password: Plain password

        Returns:
            User account if valid, None otherwise
        """
        with self.db.session() as session:
            user = session.query(UserAccount).filter(
                or_(UserAccount.email == identifier.lower(), UserAccount.username == identifier),
                UserAccount.is_active == True,
            ).first()

            if not user:
                return None

            if not self.verify_password(password, user.password_hash):
                return None

            user.last_login_at = datetime.now(timezone.utc).replace(tzinfo=None)

        self.logger.info("user_authenticated", user_id=user.id)
        return user

    def get_user_by_id(self, user_id: int) -> UserAccount | None:
        with self.db.session() as session:
            return session.get(UserAccount, user_id)

    def get_user_by_email(self, email: str) -> UserAccount | None:
        with self.db.session() as session:
            return session.query(UserAccount).filter(
                UserAccount.email == email.lower(),
            ).first()

    # ==================== JWT TOKENS ====================

    def _encode(self, payload: dict) -> str:
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def _decode(self, token: str) -> dict | None:
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except JWTError as e:
            self.logger.debug("token_verification_failed", error=str(e))
            return None

    def create_access_token(self, user_id: int, expires_delta: timedelta | None = None) -> str:
        """Create a session token.

        Args:
            user_id: User ID
            expires_delta: Optional expiration time

        Returns:
            JWT token string
        """
        if expires_delta is None:
            expires_delta = timedelta(hours=settings.session_expire_hours)

        now = datetime.now(timezone.utc)
        return self._encode({
            "sub": str(user_id),
            "type": SESSION_TOKEN_TYPE,
            "exp": now + expires_delta,
            "iat": now,
        })

    def verify_session_token(self, token: str) -> int:
        """Resolve a session token to a user ID.

        Raises:
            InvalidTokenError: If the token is malformed, expired or not a session token
        """
        payload = self._decode(token)
        if not payload or payload.get("type") != SESSION_TOKEN_TYPE:
            raise InvalidTokenError()

        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError()

    # ==================== PASSWORD RESET ====================

    def generate_reset_token(self, email: str) -> tuple[str, UserAccount] | None:
        """Generate password reset token.

        Args:
            email: User email

        Returns:
            (token, user) or None if user not found
        """
        user = self.get_user_by_email(email)
        if not user:
            return None

        token = self._encode({
            "sub": str(user.id),
            "type": RESET_TOKEN_TYPE,
            "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_expire_minutes),
        })
        return token, user

    def reset_password(self, token: str, new_password: str) -> int:
        """Reset password with token.

        Args:
            token: Reset token
            new_password: New plain password

        Returns:
            ID of the user whose password changed

        Raises:
            InvalidResetTokenError: If the token is invalid, expired or unknown
        """
        payload = self._decode(token)
        if not payload or payload.get("type") != RESET_TOKEN_TYPE:
            raise InvalidResetTokenError()

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidResetTokenError()

        with self.db.session() as session:
            user = session.get(UserAccount, int(user_id))
            if not user:
                raise InvalidResetTokenError()

            user.password_hash = self.hash_password(new_password)

        self.logger.info("password_reset", user_id=user.id)
        return user.id
