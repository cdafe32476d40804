"""Reward ledger database models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from refhub.storage.models import Base, utcnow


class Reward(Base):
    """Point grant owned by a user.

    Rows are append-only. ``referral_id`` is unique so a referral can be
    credited at most once.
    """
    __tablename__ = "rewards"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("user_accounts.id"), nullable=False, index=True)

    amount = Column(Integer, nullable=False)
    description = Column(String(500), nullable=False)

    # Referral that earned this reward, if any
    referral_id = Column(Integer, ForeignKey("referrals.id"), nullable=True, unique=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Reward(id={self.id}, user={self.user_id}, amount={self.amount})>"


class RewardEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: int
    description: str
    referral_id: int | None = None
    created_at: datetime


class RewardSummary(BaseModel):
    """A user's rewards, newest first, with their sum."""
    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(alias="totalRewards")
    rewards: list[RewardEntry]
