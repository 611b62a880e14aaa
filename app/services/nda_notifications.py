"""Email content for NDA lifecycle events.

Rendering works only from the event payload so the notifier never has to
read the request back from the database.
"""

import logging
from datetime import datetime
from html import escape

from app.config import settings
from app.services.email import EmailMessage, normalize_site_url
from app.services.event import EventType

logger = logging.getLogger(__name__)

SIGNATURE = "<p>Best regards,<br/>Bank of Unique Ideas</p>"


def _title(payload: dict) -> str:
    return payload.get("idea_title") or "idea"


def _site_url() -> str:
    base = normalize_site_url(settings.site_url)
    if base is None:
        logger.warning("SITE_URL %r is not an http(s) URL", settings.site_url)
        return ""
    return base


def _format_expiry(raw: str | None) -> str:
    if not raw:
        return "the end of your access window"
    try:
        return datetime.fromisoformat(raw).strftime("%Y-%m-%d %H:%M UTC")
    except ValueError:
        return raw


def _requested(request_id: str, payload: dict) -> EmailMessage | None:
    if not settings.admin_notification_email:
        return None
    title = escape(_title(payload))
    return EmailMessage(
        to=settings.admin_notification_email,
        subject=f"New NDA request – {_title(payload)}",
        html=(
            f"<p>A new NDA request was submitted for <strong>{title}</strong>.</p>"
            f"<p>Investor email: {escape(payload.get('contact_email') or '')}</p>"
            f"<p>Request id: {escape(request_id)}</p>"
        ),
    )


def _approved(request_id: str, payload: dict) -> EmailMessage:
    link = f"{_site_url()}/nda/{request_id}"
    return EmailMessage(
        to=payload.get("contact_email") or "",
        subject=f"NDA approved – {_title(payload)}",
        html=(
            "<p>Dear Investor,</p>"
            f"<p>Your NDA request for <strong>{escape(_title(payload))}</strong> "
            "has been approved.</p>"
            "<p>Please click the link below to download and sign the NDA, "
            "then upload the signed copy:</p>"
            f'<p><a href="{escape(link)}">{escape(link)}</a></p>'
            f"{SIGNATURE}"
        ),
    )


def _rejected(request_id: str, payload: dict) -> EmailMessage:
    return EmailMessage(
        to=payload.get("contact_email") or "",
        subject=f"NDA request not approved – {_title(payload)}",
        html=(
            "<p>Dear Investor,</p>"
            f"<p>Your NDA request for <strong>{escape(_title(payload))}</strong> "
            "was not approved at this time.</p>"
            "<p>You may contact us if you need more information.</p>"
            f"{SIGNATURE}"
        ),
    )


def _signed(request_id: str, payload: dict) -> EmailMessage | None:
    if not settings.admin_notification_email:
        return None
    return EmailMessage(
        to=settings.admin_notification_email,
        subject=f"Signed NDA received – {_title(payload)}",
        html=(
            f"<p>A signed NDA was uploaded for <strong>{escape(_title(payload))}</strong>.</p>"
            f"<p>Request id: {escape(request_id)}</p>"
        ),
    )


def _verified(request_id: str, payload: dict) -> EmailMessage:
    link = f"{_site_url()}/access/{request_id}"
    expires = _format_expiry(payload.get("access_expires_at"))
    return EmailMessage(
        to=payload.get("contact_email") or "",
        subject=f"Access unlocked – {_title(payload)}",
        html=(
            "<p>Dear Investor,</p>"
            f"<p>Your signed NDA for <strong>{escape(_title(payload))}</strong> "
            "has been received.</p>"
            "<p>Open the link below to view the full idea brief:</p>"
            f'<p><a href="{escape(link)}">{escape(link)}</a></p>'
            f"<p>Your access is available until {escape(expires)}.</p>"
            f"{SIGNATURE}"
        ),
    )


RENDERERS = {
    EventType.nda_requested: _requested,
    EventType.nda_approved: _approved,
    EventType.nda_rejected: _rejected,
    EventType.nda_signed: _signed,
    EventType.nda_verified: _verified,
}


def render(event_type: EventType, request_id: str, payload: dict) -> EmailMessage | None:
    """Build the message for an event, or None when nobody should be mailed."""
    return RENDERERS[event_type](str(request_id), payload or {})
