"""Reward ledger: append-only point grants."""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from refhub.errors import DuplicateRewardError, PersistenceError
from refhub.logging_config import get_logger
from refhub.rewards.models import Reward, RewardEntry, RewardSummary
from refhub.storage.db import Database


class RewardLedger:
    """Service for granting and listing rewards."""

    def __init__(self, database: Database):
        self.db = database
        self.logger = get_logger(__name__)

    def grant(
        self,
        user_id: int,
        amount: int,
        description: str,
        referral_id: int | None = None,
    ) -> int:
        """Append a reward row.

        Never merges with earlier rewards of the same user.

        Args:
            user_id: Owner of the reward
            amount: Points granted (positive)
            description: Human readable reason
            referral_id: Referral that earned the reward, if any

        Returns:
            Reward ID

        Raises:
            DuplicateRewardError: The referral was already rewarded
        """
        if amount <= 0:
            raise ValueError("Amount must be positive")

        reward = Reward(
            user_id=user_id,
            amount=amount,
            description=description,
            referral_id=referral_id,
        )
        try:
            with self.db.session() as session:
                session.add(reward)
                session.flush()
        except IntegrityError as e:
            if referral_id is not None and self.has_reward_for_referral(referral_id):
                raise DuplicateRewardError(referral_id) from e
            raise PersistenceError("Could not record reward") from e

        self.logger.info(
            "reward_granted",
            reward_id=reward.id,
            user_id=user_id,
            amount=amount,
            referral_id=referral_id,
        )
        return reward.id

    def has_reward_for_referral(self, referral_id: int) -> bool:
        with self.db.session() as session:
            return session.scalar(
                select(Reward.id).where(Reward.referral_id == referral_id)
            ) is not None

    def list_for_user(self, user_id: int) -> RewardSummary:
        """List a user's rewards, newest first, with the total."""
        with self.db.session() as session:
            rewards = session.scalars(
                select(Reward)
                .where(Reward.user_id == user_id)
                .order_by(Reward.created_at.desc(), Reward.id.desc())
            ).all()

            entries = [RewardEntry.model_validate(r) for r in rewards]

        return RewardSummary(total=sum(e.amount for e in entries), rewards=entries)
