"""Referral program: codes, the referral ledger and signup attribution.

- every user gets one 8 character referral code at registration
- a signup with a valid code records a referral and credits the referrer
"""

from refhub.referral.codes import ReferralCodeGenerator
from refhub.referral.ledger import ReferralLedger
from refhub.referral.models import Referral, ReferralEntry, ReferralStats, ReferralStatus
from refhub.referral.pipeline import AttributionPipeline

__all__ = [
    "AttributionPipeline",
    "Referral",
    "ReferralCodeGenerator",
    "ReferralEntry",
    "ReferralLedger",
    "ReferralStats",
    "ReferralStatus",
]
