"""Reward ledger: point grants earned through referrals."""

from refhub.rewards.ledger import RewardLedger
from refhub.rewards.models import Reward, RewardEntry, RewardSummary

__all__ = ["Reward", "RewardEntry", "RewardLedger", "RewardSummary"]
