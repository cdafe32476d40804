"""Transactional email delivery."""

from refhub.email.service import EmailService

__all__ = ["EmailService"]
