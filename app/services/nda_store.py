import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import DuplicateActiveRequest, NotFound, StaleState
from app.models.nda import ACTIVE_STATUSES, Idea, NdaRequest, NdaStatus
from app.services.common import coerce_uuid, utcnow

logger = logging.getLogger(__name__)

_ACTIVE_STATUS_LIST = sorted(ACTIVE_STATUSES, key=lambda s: s.value)


def _parse_id(value, label: str):
    try:
        return coerce_uuid(value)
    except (ValueError, TypeError, AttributeError):
        raise NotFound(f"{label} not found")


class NdaRequests:
    """Persistence for NDA requests.

    The store is the only place rows are written. Status changes go through
    ``apply_transition``, a compare-and-swap on the current status, so two
    concurrent writers against the same request cannot both win.
    """

    @staticmethod
    def create(
        db: Session, idea_id: str, requester_id: str, contact_email: str
    ) -> NdaRequest:
        idea_uuid = _parse_id(idea_id, "Idea")
        requester_uuid = _parse_id(requester_id, "Requester")
        idea = db.get(Idea, idea_uuid)
        if not idea or not idea.is_active:
            raise NotFound("Idea not found")

        existing = NdaRequests.find_active(db, idea_uuid, requester_uuid)
        if existing:
            raise DuplicateActiveRequest(
                "An NDA request for this idea is already in progress",
                details={"request_id": str(existing.id), "status": existing.status.value},
            )

        nda = NdaRequest(
            idea_id=idea_uuid,
            requester_id=requester_uuid,
            contact_email=contact_email,
            status=NdaStatus.requested,
        )
        try:
            db.add(nda)
            db.commit()
        except IntegrityError:
            # Lost the race against a concurrent create for the same pair.
            db.rollback()
            raise DuplicateActiveRequest(
                "An NDA request for this idea is already in progress"
            )
        db.refresh(nda)
        logger.info(
            "Created NDA request %s for idea %s by requester %s",
            nda.id,
            idea_uuid,
            requester_uuid,
        )
        return nda

    @staticmethod
    def find_active(
        db: Session, idea_id, requester_id
    ) -> NdaRequest | None:
        return db.scalar(
            select(NdaRequest).where(
                NdaRequest.idea_id == coerce_uuid(idea_id),
                NdaRequest.requester_id == coerce_uuid(requester_id),
                NdaRequest.status.in_(_ACTIVE_STATUS_LIST),
            )
        )

    @staticmethod
    def find(db: Session, request_id) -> NdaRequest | None:
        try:
            request_uuid = coerce_uuid(request_id)
        except (ValueError, TypeError, AttributeError):
            return None
        if request_uuid is None:
            return None
        return db.get(NdaRequest, request_uuid, populate_existing=True)

    @staticmethod
    def get(db: Session, request_id) -> NdaRequest:
        nda = NdaRequests.find(db, request_id)
        if not nda:
            raise NotFound("NDA request not found")
        return nda

    @staticmethod
    def apply_transition(
        db: Session,
        request_id,
        expected_status: NdaStatus,
        new_fields: dict,
    ) -> NdaRequest:
        request_uuid = _parse_id(request_id, "NDA request")
        values = dict(new_fields)
        values["updated_at"] = utcnow()
        stmt = (
            update(NdaRequest)
            .where(
                NdaRequest.id == request_uuid,
                NdaRequest.status == expected_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        if result.rowcount != 1:
            db.rollback()
            current = db.get(NdaRequest, request_uuid, populate_existing=True)
            if not current:
                raise NotFound("NDA request not found")
            logger.warning(
                "Stale transition on NDA request %s: expected %s, found %s",
                request_uuid,
                expected_status.value,
                current.status.value,
            )
            raise StaleState(
                "Update conflict, please refresh",
                details={
                    "expected_status": expected_status.value,
                    "current_status": current.status.value,
                },
            )
        db.commit()
        nda = db.get(NdaRequest, request_uuid, populate_existing=True)
        logger.info(
            "NDA request %s moved %s -> %s",
            request_uuid,
            expected_status.value,
            nda.status.value,
        )
        return nda


nda_requests = NdaRequests()
