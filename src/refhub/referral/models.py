"""Referral ledger database models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from refhub.storage.models import Base, utcnow


class ReferralStatus(str, Enum):
    """Referral lifecycle. Only pending -> successful is allowed."""
    PENDING = "pending"
    SUCCESSFUL = "successful"


class Referral(Base):
    """One referrer/referred-user relationship."""
    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referrer_id", "referred_user_id", name="uq_referrals_referrer_referred"),
    )

    id = Column(Integer, primary_key=True)
    referrer_id = Column(Integer, ForeignKey("user_accounts.id"), nullable=False, index=True)
    referred_user_id = Column(Integer, ForeignKey("user_accounts.id"), nullable=False, index=True)

    status = Column(
        SQLEnum(ReferralStatus, name="referral_status", values_callable=lambda e: [m.value for m in e]),
        default=ReferralStatus.PENDING,
        nullable=False,
    )

    date_referred = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    referrer = relationship("UserAccount", foreign_keys=[referrer_id])
    referred_user = relationship("UserAccount", foreign_keys=[referred_user_id])

    def __repr__(self):
        return f"<Referral(referrer={self.referrer_id}, referred={self.referred_user_id}, status={self.status})>"


class ReferralEntry(BaseModel):
    """A referral as shown to the referrer."""
    model_config = ConfigDict(from_attributes=True)

    username: str
    email: str
    date_referred: datetime
    status: ReferralStatus


class ReferralStats(BaseModel):
    successful_referrals: int
