"""Reward read endpoint."""

from fastapi import APIRouter, Depends, Request

from refhub.api.deps import get_cache, get_reward_ledger, resource_key
from refhub.auth.middleware import get_current_user_id
from refhub.cache.response_cache import ResponseCache
from refhub.rewards.ledger import RewardLedger
from refhub.rewards.models import RewardSummary
from refhub.settings import settings

router = APIRouter(tags=["rewards"])


@router.get("/rewards", response_model=RewardSummary)
async def list_rewards(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    ledger: RewardLedger = Depends(get_reward_ledger),
    cache: ResponseCache = Depends(get_cache),
):
    """Return the caller's rewards with their total."""
    return cache.get_or_load(
        user_id,
        resource_key(request),
        lambda: ledger.list_for_user(user_id),
        settings.cache_ttl_seconds,
    )
