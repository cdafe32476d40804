"""RefHub - referral and reward tracking backend."""

__version__ = "1.0.0"
