"""Read-side access checks for protected idea content.

A cookie only points at an NDA request; it carries no claims. Every check
re-reads the request and requires ``status == verified`` and
``now < access_expires_at``.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session
from starlette.responses import RedirectResponse

from app.config import settings
from app.errors import InvalidState
from app.models.nda import NdaRequest, NdaStatus
from app.services.common import as_utc, utcnow
from app.services.nda_store import nda_requests

logger = logging.getLogger(__name__)

_MAX_TOKEN_LENGTH = 128


class SessionReason(enum.Enum):
    no_token = "no_token"
    not_found = "not_found"
    not_verified = "not_verified"
    expired = "expired"
    valid = "valid"


REASON_MESSAGES = {
    SessionReason.no_token: "Missing nda_access cookie",
    SessionReason.not_found: "NDA request not found",
    SessionReason.not_verified: "Not verified yet",
    SessionReason.expired: "Access expired",
    SessionReason.valid: None,
}


@dataclass(frozen=True)
class AccessGrant:
    idea_id: uuid.UUID
    requester_id: uuid.UUID
    expires_at: datetime


@dataclass(frozen=True)
class SessionResolution:
    has_token: bool
    reason: SessionReason
    request_id: str | None = None
    status: NdaStatus | None = None
    expires_at: datetime | None = None
    grant: AccessGrant | None = None

    @property
    def unlocked_idea_ids(self) -> list[str]:
        if self.grant is None:
            return []
        return [str(self.grant.idea_id)]

    @property
    def message(self) -> str | None:
        return REASON_MESSAGES[self.reason]


def evaluate(request: NdaRequest, now: datetime) -> SessionReason:
    if request.status != NdaStatus.verified:
        return SessionReason.not_verified
    expires_at = as_utc(request.access_expires_at)
    if expires_at is None or expires_at <= now:
        return SessionReason.expired
    return SessionReason.valid


def grant_for(request: NdaRequest, now: datetime | None = None) -> AccessGrant | None:
    now = as_utc(now) or utcnow()
    if evaluate(request, now) != SessionReason.valid:
        return None
    return AccessGrant(
        idea_id=request.idea_id,
        requester_id=request.requester_id,
        expires_at=as_utc(request.access_expires_at),
    )


def normalize_token(raw: str | None) -> str | None:
    if raw is None:
        return None
    token = raw.strip()
    if not token or token == "undefined":
        return None
    return token[:_MAX_TOKEN_LENGTH]


def resolve_session(
    db: Session, token: str | None, now: datetime | None = None
) -> SessionResolution:
    token = normalize_token(token)
    if token is None:
        return SessionResolution(has_token=False, reason=SessionReason.no_token)

    request = nda_requests.find(db, token)
    if request is None:
        return SessionResolution(
            has_token=True, reason=SessionReason.not_found, request_id=token
        )

    now = as_utc(now) or utcnow()
    reason = evaluate(request, now)
    grant = grant_for(request, now) if reason == SessionReason.valid else None
    return SessionResolution(
        has_token=True,
        reason=reason,
        request_id=str(request.id),
        status=request.status,
        expires_at=as_utc(request.access_expires_at),
        grant=grant,
    )


def compute_grants(
    db: Session, token: str | None, now: datetime | None = None
) -> frozenset[uuid.UUID]:
    """Idea ids the bearer of ``token`` may view in full right now."""
    resolution = resolve_session(db, token, now)
    if resolution.grant is None:
        return frozenset()
    return frozenset({resolution.grant.idea_id})


def redeem(token: str | None) -> RedirectResponse:
    """Turn an emailed access link into the session cookie.

    Always redirects to the protected listing, whatever the token.
    """
    response = RedirectResponse(url=settings.nda_protected_listing_path, status_code=302)
    token = normalize_token(token)
    if token is None:
        return response
    response.set_cookie(
        key=settings.nda_cookie_name,
        value=token,
        max_age=settings.nda_cookie_max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.nda_cookie_secure,
    )
    logger.info("Redeemed NDA access link %s...", token[:8])
    return response


def check_access(
    db: Session, request_id, now: datetime | None = None
) -> AccessGrant:
    request = nda_requests.get(db, request_id)
    now = as_utc(now) or utcnow()
    reason = evaluate(request, now)
    if reason == SessionReason.not_verified:
        raise InvalidState(
            "NDA not verified",
            details={"status": request.status.value},
            status_code=403,
        )
    if reason == SessionReason.expired:
        raise InvalidState(
            "NDA access expired",
            details={"status": request.status.value},
            status_code=403,
        )
    return grant_for(request, now)


def idea_path(idea_id) -> str:
    return settings.nda_idea_path_template.format(idea_id=idea_id)


def status_label(request: NdaRequest, now: datetime | None = None) -> str:
    now = as_utc(now) or utcnow()
    status = request.status
    if status in (NdaStatus.requested, NdaStatus.pending):
        return "pending review"
    if status == NdaStatus.approved:
        return "awaiting signature"
    if status == NdaStatus.signed:
        return "signature received"
    if status == NdaStatus.rejected:
        return "rejected"
    expires_at = as_utc(request.access_expires_at)
    if expires_at is None or expires_at <= now:
        return "access expired"
    return f"access active until {expires_at.strftime('%Y-%m-%d %H:%M UTC')}"
