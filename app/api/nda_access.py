import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.config import settings
from app.schemas.nda import AccessCheckRead, SessionRead
from app.services import nda_access as access_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["nda-access"])


@router.get("/access/{token}")
def redeem_access_link(token: str) -> RedirectResponse:
    return access_service.redeem(token)


@router.get("/session", response_model=SessionRead)
def resolve_session(request: Request, db: Session = Depends(get_db)) -> SessionRead:
    token = request.cookies.get(settings.nda_cookie_name)
    try:
        resolution = access_service.resolve_session(db, token)
    except SQLAlchemyError:
        logger.exception("Session lookup failed")
        return SessionRead(
            has_token=access_service.normalize_token(token) is not None,
            reason="unavailable",
            message="Access status is temporarily unavailable",
        )
    return SessionRead(
        has_token=resolution.has_token,
        request_id=resolution.request_id,
        status=resolution.status,
        unlocked_idea_ids=resolution.unlocked_idea_ids,
        expires_at=resolution.expires_at,
        reason=resolution.reason.value,
        message=resolution.message,
    )


@router.get("/nda/requests/{request_id}/access", response_model=AccessCheckRead)
def check_access(request_id: str, db: Session = Depends(get_db)) -> AccessCheckRead:
    grant = access_service.check_access(db, request_id)
    return AccessCheckRead(
        idea_id=grant.idea_id,
        redirect_to=access_service.idea_path(grant.idea_id),
        expires_at=grant.expires_at,
    )
