import logging
from dataclasses import dataclass

import httpx

from app.config import settings
from app.errors import NotificationFailure

logger = logging.getLogger(__name__)

PROVIDERS = {"stub", "resend"}


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


def normalize_site_url(raw: str | None) -> str | None:
    base = (raw or "").strip().rstrip("/")
    if not base.lower().startswith(("http://", "https://")):
        return None
    return base


def resolve_recipient(to: str) -> str:
    """Outside production, mail goes to the configured test inbox if any."""
    if settings.environment != "production" and settings.email_test_recipient:
        return settings.email_test_recipient
    return to


class EmailClient:
    @staticmethod
    def send(message: EmailMessage) -> str:
        """Send one message. Returns the provider name that handled it.

        Raises NotificationFailure on any provider or transport error.
        """
        provider = settings.email_provider.strip().lower()
        if provider not in PROVIDERS:
            raise NotificationFailure(f"Invalid email provider: {provider!r}")
        if not message.to:
            raise NotificationFailure("Email recipient is missing")

        if provider == "stub":
            logger.info(
                "Email (stub) to %s: %s",
                message.to,
                message.subject,
            )
            return provider

        EmailClient._send_resend(message)
        return provider

    @staticmethod
    def _send_resend(message: EmailMessage) -> None:
        if not settings.resend_api_key:
            raise NotificationFailure("RESEND_API_KEY is not configured")

        final_to = resolve_recipient(message.to)
        body = {
            "from": settings.email_from,
            "to": final_to,
            "subject": message.subject,
            "html": message.html,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.resend_api_key}",
        }
        try:
            with httpx.Client(timeout=settings.email_timeout_seconds) as client:
                resp = client.post(settings.resend_api_url, json=body, headers=headers)
        except (httpx.HTTPError, OSError) as e:
            raise NotificationFailure(f"Email transport failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise NotificationFailure(
                f"Resend API error {resp.status_code}: {resp.text[:500]}"
            )
        logger.info("Email sent via resend to %s: %s", final_to, message.subject)


email_client = EmailClient()
