"""Authentication models for user accounts."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from refhub.storage.models import Base, utcnow


class UserAccount(Base):
    """Registered user.

    The referral code is minted once at registration and never changes.
    """
    __tablename__ = "user_accounts"

    id = Column(Integer, primary_key=True)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)

    # Auth
    password_hash = Column(String(255), nullable=False)

    # Referral program
    referral_code = Column(String(20), unique=True, nullable=False, index=True)

    # Status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_login_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<UserAccount(id={self.id}, username={self.username}, code={self.referral_code})>"


# Pydantic models for API
from pydantic import BaseModel, ConfigDict


class RegisteredUser(BaseModel):
    """Public projection of a newly registered user."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    referral_code: str


class UserSummary(BaseModel):
    """User data returned after login."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
