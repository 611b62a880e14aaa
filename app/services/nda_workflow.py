import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.nda import NdaRequest
from app.services.event import EventType
from app.services.nda_documents import documents
from app.services.nda_state_machine import (
    Actor,
    NdaAction,
    SideEffect,
    dispatch_side_effects,
    notification_payload,
    state_machine,
)
from app.services.nda_store import nda_requests

logger = logging.getLogger(__name__)

ADMIN_DECISIONS = {
    "approve": NdaAction.approve,
    "reject": NdaAction.reject,
}


@dataclass(frozen=True)
class WorkflowOutcome:
    request: NdaRequest
    warnings: list[str]


class NdaWorkflow:
    """Commits a change, then dispatches its notifications."""

    @staticmethod
    def submit_request(
        db: Session, idea_id, requester_id, contact_email: str
    ) -> WorkflowOutcome:
        request = nda_requests.create(db, idea_id, requester_id, contact_email)
        effect = SideEffect(
            event=EventType.nda_requested,
            request_id=request.id,
            payload=notification_payload(request),
        )
        warnings = dispatch_side_effects([effect])
        return WorkflowOutcome(request=request, warnings=warnings)

    @staticmethod
    def decide(db: Session, request_id, action: str, actor: Actor) -> WorkflowOutcome:
        nda_action = ADMIN_DECISIONS.get(action)
        if nda_action is None:
            raise ValidationError(
                "Invalid action",
                details={"action": action, "allowed": sorted(ADMIN_DECISIONS)},
            )
        result = state_machine.apply(db, request_id, nda_action, actor)
        warnings = dispatch_side_effects(result.side_effects)
        return WorkflowOutcome(request=result.request, warnings=warnings)

    @staticmethod
    def upload_signed(
        db: Session,
        request_id,
        content: bytes,
        content_type: str | None,
        file_name: str | None = None,
    ) -> WorkflowOutcome:
        result = documents.accept_signed_upload(
            db, request_id, content, content_type, file_name=file_name
        )
        warnings = dispatch_side_effects(result.side_effects)
        return WorkflowOutcome(request=result.request, warnings=warnings)


nda_workflow = NdaWorkflow()
