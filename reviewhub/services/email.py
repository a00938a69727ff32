"""
Email Delivery.

Renders transactional emails from Jinja2 templates and delivers them
through the SendGrid v3 mail API.

Standalone usage:
    from reviewhub.services.email import EmailService

    service = EmailService()
    await service.send_team_invitation(
        to_email="sam@example.com",
        inviter_name="Alex",
        business_name="Harbor Cafe",
        invitation_token="abc123",
    )
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx
import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from reviewhub.config.settings import get_settings

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


# =============================================================================
# Service
# =============================================================================


class EmailService:
    """Transactional email sender.

    Every public method returns True when SendGrid accepted the message and
    False otherwise; delivery failures are logged, never raised, so a
    failed email does not abort the operation that triggered it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key or (
            settings.sendgrid_api_key.get_secret_value()
            if settings.sendgrid_api_key
            else None
        )
        self._from_email = settings.from_email
        self._from_name = settings.from_name
        self._frontend_url = settings.frontend_url.rstrip("/")
        self._timeout = settings.http_timeout_seconds
        self._http_client = http_client
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(enabled_extensions=["html"]),
        )

    # -----------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------

    def render(self, template_name: str, **context) -> str:
        """Render an HTML template with the shared footer context."""
        template = self._env.get_template(template_name)
        return template.render(
            frontend_url=self._frontend_url,
            year=datetime.now().year,
            **context,
        )

    # -----------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------

    async def send_team_invitation(
        self,
        to_email: str,
        inviter_name: str,
        business_name: str,
        invitation_token: str,
    ) -> bool:
        accept_url = f"{self._frontend_url}/accept-invitation?token={invitation_token}"
        subject = f"{inviter_name} invited you to join {business_name} on ReviewHub"
        html = self.render(
            "team_invitation_email.html",
            inviter_name=inviter_name,
            business_name=business_name,
            accept_url=accept_url,
        )
        text = (
            f"{inviter_name} has invited you to join {business_name} on ReviewHub.\n\n"
            f"Accept the invitation: {accept_url}\n\n"
            "This invitation expires in 7 days."
        )
        return await self.send_email(to_email, subject, html, text)

    async def send_new_review_notification(
        self,
        to_email: str,
        business_name: str,
        reviewer_name: str,
        rating: int,
        review_text: Optional[str],
        platform: str,
    ) -> bool:
        subject = f"New {rating}-star review for {business_name}"
        html = self.render(
            "review_notification_email.html",
            business_name=business_name,
            reviewer_name=reviewer_name,
            rating=rating,
            stars="★" * rating + "☆" * (5 - rating),
            review_text=review_text or "",
            platform=platform,
        )
        text = (
            f"{reviewer_name} left a {rating}-star review on {platform} for {business_name}.\n\n"
            f"{review_text or ''}\n\n"
            f"Reply from your dashboard: {self._frontend_url}/reviews"
        )
        return await self.send_email(to_email, subject, html, text)

    async def send_welcome_email(self, to_email: str, user_name: str) -> bool:
        html = self.render("welcome_email.html", user_name=user_name)
        text = (
            f"Hi {user_name},\n\nWelcome to ReviewHub! Connect your review platforms "
            f"to get started: {self._frontend_url}/integrations"
        )
        return await self.send_email(to_email, "Welcome to ReviewHub!", html, text)

    # -----------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------

    async def send_email(self, to_email: str, subject: str, html: str, text: str) -> bool:
        """Deliver one message through SendGrid."""
        if not self._api_key:
            logger.warning("email_skipped_no_api_key", to=to_email, subject=subject)
            return False

        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self._from_email, "name": self._from_name},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html},
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(SENDGRID_SEND_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(SENDGRID_SEND_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("email_send_failed", to=to_email, subject=subject, error=str(e))
            return False

        if response.status_code >= 400:
            logger.error(
                "email_send_rejected",
                to=to_email,
                subject=subject,
                status_code=response.status_code,
            )
            return False

        logger.info("email_sent", to=to_email, subject=subject)
        return True


# =============================================================================
# Singleton
# =============================================================================

_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the singleton EmailService."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service() -> None:
    """Reset the singleton (for testing)."""
    global _email_service
    _email_service = None
