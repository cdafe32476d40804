"""FastAPI dependencies resolving services wired by ``create_app``."""

from fastapi import Request

from refhub.cache.response_cache import ResponseCache
from refhub.email.service import EmailService
from refhub.referral.ledger import ReferralLedger
from refhub.referral.pipeline import AttributionPipeline
from refhub.rewards.ledger import RewardLedger


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def get_referral_ledger(request: Request) -> ReferralLedger:
    return request.app.state.referral_ledger


def get_reward_ledger(request: Request) -> RewardLedger:
    return request.app.state.reward_ledger


def get_pipeline(request: Request) -> AttributionPipeline:
    return request.app.state.pipeline


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def resource_key(request: Request) -> str:
    """Cache key for a read endpoint: path plus query string."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path
