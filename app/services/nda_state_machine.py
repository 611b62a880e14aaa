"""NDA lifecycle transitions.

The transition table below is the single authority on which status a request
may move to next and who may move it there::

    requested/pending --approve-->       approved
    requested/pending --reject-->        rejected
    approved          --upload_signed--> signed
    approved          --reject-->        rejected
    signed            --verify-->        verified
    signed            --reject-->        rejected

``rejected`` is a sink. ``verified`` has no outgoing transition; access lapses
when ``access_expires_at`` passes, without a status change.

Planning a transition is pure. Applying it persists the change through the
store's compare-and-swap and returns the side effects for the caller to
dispatch after the commit.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import InvalidTransition, StaleState
from app.metrics import NDA_TRANSITIONS
from app.models.nda import NdaRequest, NdaStatus
from app.services.common import as_utc, utcnow
from app.services.event import EventType, publish_event
from app.services.nda_store import nda_requests

logger = logging.getLogger(__name__)


class NdaAction(enum.Enum):
    approve = "approve"
    reject = "reject"
    upload_signed = "upload_signed"
    verify = "verify"


class ActorRole(enum.Enum):
    admin = "admin"
    system = "system"
    investor = "investor"


@dataclass(frozen=True)
class Actor:
    role: ActorRole
    subject: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.admin


SYSTEM_ACTOR = Actor(ActorRole.system, subject="document-exchange")


@dataclass(frozen=True)
class TransitionRule:
    sources: frozenset
    target: NdaStatus
    roles: frozenset
    event: EventType


TRANSITIONS: dict[NdaAction, TransitionRule] = {
    NdaAction.approve: TransitionRule(
        sources=frozenset({NdaStatus.requested, NdaStatus.pending}),
        target=NdaStatus.approved,
        roles=frozenset({ActorRole.admin}),
        event=EventType.nda_approved,
    ),
    NdaAction.reject: TransitionRule(
        sources=frozenset(
            {
                NdaStatus.requested,
                NdaStatus.pending,
                NdaStatus.approved,
                NdaStatus.signed,
            }
        ),
        target=NdaStatus.rejected,
        roles=frozenset({ActorRole.admin}),
        event=EventType.nda_rejected,
    ),
    NdaAction.upload_signed: TransitionRule(
        sources=frozenset({NdaStatus.approved}),
        target=NdaStatus.signed,
        roles=frozenset({ActorRole.system}),
        event=EventType.nda_signed,
    ),
    NdaAction.verify: TransitionRule(
        sources=frozenset({NdaStatus.signed}),
        target=NdaStatus.verified,
        roles=frozenset({ActorRole.system}),
        event=EventType.nda_verified,
    ),
}


@dataclass(frozen=True)
class SideEffect:
    event: EventType
    request_id: uuid.UUID
    payload: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionPlan:
    request_id: uuid.UUID
    action: NdaAction
    from_status: NdaStatus
    to_status: NdaStatus
    changes: dict
    event: EventType


@dataclass(frozen=True)
class TransitionResult:
    request: NdaRequest
    plan: TransitionPlan
    side_effects: tuple[SideEffect, ...]


def allowed_actions(status: NdaStatus, actor: Actor) -> list[NdaAction]:
    return [
        action
        for action, rule in TRANSITIONS.items()
        if status in rule.sources and actor.role in rule.roles
    ]


class NdaStateMachine:
    def __init__(self, access_window: timedelta | None = None) -> None:
        self._access_window = access_window

    @property
    def access_window(self) -> timedelta:
        if self._access_window is not None:
            return self._access_window
        return timedelta(days=settings.nda_access_window_days)

    def transition(
        self,
        request: NdaRequest,
        action: NdaAction,
        actor: Actor,
        *,
        now: datetime | None = None,
        signed_document_path: str | None = None,
    ) -> TransitionPlan:
        """Validate ``action`` against the request snapshot and plan the write."""
        rule = TRANSITIONS[action]
        current = request.status
        if actor.role not in rule.roles:
            raise InvalidTransition(
                f"Actor role '{actor.role.value}' may not {action.value} NDA requests",
                details={"action": action.value, "actor": actor.role.value},
            )
        if current not in rule.sources:
            if current == NdaStatus.rejected:
                message = "NDA request already rejected"
            else:
                message = f"Cannot {action.value} an NDA request that is {current.value}"
            raise InvalidTransition(
                message,
                details={"action": action.value, "status": current.value},
            )

        now = as_utc(now) or utcnow()
        changes: dict = {"status": rule.target}
        if action == NdaAction.upload_signed:
            if not signed_document_path:
                raise InvalidTransition(
                    "A stored signed document is required",
                    details={"action": action.value},
                )
            changes["signed_document_path"] = signed_document_path
            changes["signed_at"] = now
        elif action == NdaAction.verify:
            changes["access_expires_at"] = now + self.access_window
        else:
            changes["access_expires_at"] = None
            if action == NdaAction.reject:
                # The blob itself is kept in storage.
                changes["signed_document_path"] = None

        return TransitionPlan(
            request_id=request.id,
            action=action,
            from_status=current,
            to_status=rule.target,
            changes=changes,
            event=rule.event,
        )

    def apply(
        self,
        db: Session,
        request_id,
        action: NdaAction,
        actor: Actor,
        *,
        now: datetime | None = None,
        signed_document_path: str | None = None,
    ) -> TransitionResult:
        request = nda_requests.get(db, request_id)
        try:
            plan = self.transition(
                request,
                action,
                actor,
                now=now,
                signed_document_path=signed_document_path,
            )
        except InvalidTransition:
            NDA_TRANSITIONS.labels(action=action.value, outcome="invalid").inc()
            raise
        if action == NdaAction.reject and request.signed_document_path:
            logger.info(
                "Rejecting NDA request %s; signed copy kept at %s",
                request.id,
                request.signed_document_path,
            )
        try:
            updated = nda_requests.apply_transition(
                db, request.id, plan.from_status, plan.changes
            )
        except StaleState:
            NDA_TRANSITIONS.labels(action=action.value, outcome="stale").inc()
            raise
        NDA_TRANSITIONS.labels(action=action.value, outcome="applied").inc()
        logger.info(
            "Applied %s on NDA request %s by %s",
            action.value,
            updated.id,
            actor.role.value,
        )
        effect = SideEffect(
            event=plan.event,
            request_id=updated.id,
            payload=notification_payload(updated),
        )
        return TransitionResult(request=updated, plan=plan, side_effects=(effect,))


def notification_payload(request: NdaRequest) -> dict:
    try:
        idea_title = request.idea.title if request.idea else None
    except SQLAlchemyError as e:
        logger.warning("Idea lookup failed for NDA request %s: %s", request.id, e)
        idea_title = None
    expires_at = as_utc(request.access_expires_at)
    return {
        "contact_email": request.contact_email,
        "idea_id": str(request.idea_id),
        "idea_title": idea_title,
        "status": request.status.value,
        "access_expires_at": expires_at.isoformat() if expires_at else None,
    }


def dispatch_side_effects(side_effects) -> list[str]:
    """Publish side effects after commit. Returns warnings for the response."""
    warnings = []
    for effect in side_effects:
        if not publish_event(effect.event, effect.request_id, effect.payload):
            warnings.append(f"Notification for {effect.event.value} was not queued")
    return warnings


state_machine = NdaStateMachine()
