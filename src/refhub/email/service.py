"""Email service for RefHub using SendGrid."""

import httpx

from refhub.errors import NotificationError
from refhub.logging_config import get_logger
from refhub.settings import settings

logger = get_logger(__name__)


class EmailService:
    """Email service using SendGrid API.

    Handles transactional emails:
    - Welcome emails (plain and referral flavored)
    - Password reset
    """

    SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, api_key: str | None = None):
        """Initialize email service."""
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.from_email = settings.sendgrid_from_email
        self.from_name = settings.sendgrid_from_name
        self.enabled = bool(self.api_key)

        if not self.enabled:
            logger.warning("email_service_disabled", reason="SENDGRID_API_KEY not set")

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        """Send a plain text email via SendGrid API.

        Args:
            to_email: Recipient email address
            subject: Email subject
            body: Plain text body

        Returns:
            True if sent, False if the service is disabled

        Raises:
            NotificationError: SendGrid rejected the message or was unreachable
        """
        if not self.enabled:
            logger.warning("email_not_sent", reason="service_disabled", to=to_email)
            return False

        payload = {
            "personalizations": [
                {
                    "to": [{"email": to_email}],
                    "subject": subject,
                }
            ],
            "from": {
                "email": self.from_email,
                "name": self.from_name,
            },
            "content": [
                {"type": "text/plain", "value": body},
            ],
        }

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.SENDGRID_API_URL,
                    json=payload,
                    headers=headers,
                    timeout=30.0,
                )
        except httpx.RequestError as e:
            logger.error("email_send_error", to=to_email, error=str(e))
            raise NotificationError(f"Email to {to_email} failed: {e}") from e

        if response.status_code not in (200, 201, 202):
            logger.error(
                "email_send_failed",
                to=to_email,
                status=response.status_code,
                body=response.text[:200],
            )
            raise NotificationError(f"Email to {to_email} rejected with status {response.status_code}")

        logger.info("email_sent", to=to_email, subject=subject)
        return True

    async def send_welcome_email(
        self,
        to_email: str,
        username: str,
        referrer_username: str | None = None,
    ) -> bool:
        """Send welcome email after registration.

        Args:
            to_email: User's email address
            username: New user's username
            referrer_username: Username of the referrer, for referred signups

        Returns:
            True if sent
        """
        if referrer_username:
            body = (
                f"Hi {username},\n\n"
                f"Welcome to our platform! You were referred by user {referrer_username}.\n\n"
                "Get started by setting up your profile."
            )
        else:
            body = (
                f"Hi {username},\n\n"
                "Welcome to our platform! Get started by setting up your profile."
            )

        return await self.send_email(to_email, "Welcome to our platform!", body)

    async def send_password_reset_email(self, to_email: str, reset_token: str) -> bool:
        """Send password reset link.

        Args:
            to_email: User's email address
            reset_token: JWT reset token

        Returns:
            True if sent
        """
        base_url = settings.frontend_url or settings.allowed_origins.split(",")[0]
        reset_url = f"{base_url}/reset-password?token={reset_token}"

        body = (
            f"Click here to reset your password: {reset_url}\n\n"
            f"This link is valid for {settings.reset_token_expire_minutes} minutes. "
            "If you did not request a reset, ignore this email."
        )
        return await self.send_email(to_email, "Password Reset", body)
