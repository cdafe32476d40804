"""Referral read endpoints for the authenticated referrer."""

from fastapi import APIRouter, Depends, Request

from refhub.api.deps import get_cache, get_referral_ledger, resource_key
from refhub.auth.middleware import get_current_user_id
from refhub.cache.response_cache import ResponseCache
from refhub.referral.ledger import ReferralLedger
from refhub.referral.models import ReferralEntry, ReferralStats
from refhub.settings import settings

router = APIRouter(tags=["referrals"])


@router.get("/referrals", response_model=list[ReferralEntry])
async def list_referrals(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    ledger: ReferralLedger = Depends(get_referral_ledger),
    cache: ResponseCache = Depends(get_cache),
):
    """List the users the caller referred, newest first."""
    return cache.get_or_load(
        user_id,
        resource_key(request),
        lambda: ledger.list_for_referrer(user_id),
        settings.cache_ttl_seconds,
    )


@router.get("/referral-stats", response_model=ReferralStats)
async def referral_stats(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    ledger: ReferralLedger = Depends(get_referral_ledger),
    cache: ResponseCache = Depends(get_cache),
):
    return cache.get_or_load(
        user_id,
        resource_key(request),
        lambda: ReferralStats(successful_referrals=ledger.count_successful(user_id)),
        settings.cache_ttl_seconds,
    )
