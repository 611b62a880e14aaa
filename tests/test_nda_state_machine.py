import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.errors import InvalidTransition
from app.models.nda import NdaRequest, NdaStatus
from app.services.event import EventType
from app.services.nda_state_machine import (
    SYSTEM_ACTOR,
    Actor,
    ActorRole,
    NdaAction,
    NdaStateMachine,
    allowed_actions,
    state_machine,
)

ADMIN = Actor(ActorRole.admin, subject="test")
INVESTOR = Actor(ActorRole.investor)
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _snapshot(status, **fields):
    return NdaRequest(
        id=uuid.uuid4(),
        idea_id=uuid.uuid4(),
        requester_id=uuid.uuid4(),
        contact_email="investor@example.com",
        status=status,
        **fields,
    )


class TestTransitionTable:
    @pytest.mark.parametrize(
        "status,action,actor,target",
        [
            (NdaStatus.requested, NdaAction.approve, ADMIN, NdaStatus.approved),
            (NdaStatus.pending, NdaAction.approve, ADMIN, NdaStatus.approved),
            (NdaStatus.requested, NdaAction.reject, ADMIN, NdaStatus.rejected),
            (NdaStatus.pending, NdaAction.reject, ADMIN, NdaStatus.rejected),
            (NdaStatus.approved, NdaAction.reject, ADMIN, NdaStatus.rejected),
            (NdaStatus.signed, NdaAction.reject, ADMIN, NdaStatus.rejected),
            (NdaStatus.signed, NdaAction.verify, SYSTEM_ACTOR, NdaStatus.verified),
        ],
    )
    def test_legal_transitions(self, status, action, actor, target):
        plan = state_machine.transition(_snapshot(status), action, actor, now=NOW)
        assert plan.from_status == status
        assert plan.to_status == target
        assert plan.changes["status"] == target

    def test_upload_signed_records_document(self):
        plan = state_machine.transition(
            _snapshot(NdaStatus.approved),
            NdaAction.upload_signed,
            SYSTEM_ACTOR,
            now=NOW,
            signed_document_path="signed/x/y/nda.pdf",
        )
        assert plan.to_status == NdaStatus.signed
        assert plan.changes["signed_document_path"] == "signed/x/y/nda.pdf"
        assert plan.changes["signed_at"] == NOW
        assert plan.event == EventType.nda_signed

    def test_upload_signed_requires_document(self):
        with pytest.raises(InvalidTransition):
            state_machine.transition(
                _snapshot(NdaStatus.approved),
                NdaAction.upload_signed,
                SYSTEM_ACTOR,
                now=NOW,
            )

    @pytest.mark.parametrize(
        "status,action",
        [
            (NdaStatus.requested, NdaAction.verify),
            (NdaStatus.approved, NdaAction.approve),
            (NdaStatus.approved, NdaAction.verify),
            (NdaStatus.signed, NdaAction.approve),
            (NdaStatus.verified, NdaAction.reject),
            (NdaStatus.verified, NdaAction.approve),
        ],
    )
    def test_illegal_source_status(self, status, action):
        actor = ADMIN if action in (NdaAction.approve, NdaAction.reject) else SYSTEM_ACTOR
        with pytest.raises(InvalidTransition):
            state_machine.transition(_snapshot(status), action, actor, now=NOW)

    @pytest.mark.parametrize("action", list(NdaAction))
    def test_rejected_is_a_sink(self, action):
        actor = ADMIN if action in (NdaAction.approve, NdaAction.reject) else SYSTEM_ACTOR
        with pytest.raises(InvalidTransition) as exc_info:
            state_machine.transition(
                _snapshot(NdaStatus.rejected),
                action,
                actor,
                now=NOW,
                signed_document_path="signed/x/y/nda.pdf",
            )
        assert exc_info.value.message == "NDA request already rejected"

    def test_investor_cannot_approve(self):
        with pytest.raises(InvalidTransition) as exc_info:
            state_machine.transition(
                _snapshot(NdaStatus.requested), NdaAction.approve, INVESTOR, now=NOW
            )
        assert exc_info.value.details["actor"] == "investor"

    def test_admin_cannot_upload_or_verify(self):
        with pytest.raises(InvalidTransition):
            state_machine.transition(
                _snapshot(NdaStatus.approved),
                NdaAction.upload_signed,
                ADMIN,
                signed_document_path="signed/x/y/nda.pdf",
            )
        with pytest.raises(InvalidTransition):
            state_machine.transition(_snapshot(NdaStatus.signed), NdaAction.verify, ADMIN)


class TestExpiry:
    def test_verify_sets_window_from_now(self):
        machine = NdaStateMachine(access_window=timedelta(days=3))
        plan = machine.transition(
            _snapshot(NdaStatus.signed), NdaAction.verify, SYSTEM_ACTOR, now=NOW
        )
        assert plan.changes["access_expires_at"] == NOW + timedelta(days=3)

    def test_default_window_is_seven_days(self):
        assert NdaStateMachine().access_window == timedelta(days=7)

    def test_approve_and_reject_clear_expiry(self):
        approve = state_machine.transition(
            _snapshot(NdaStatus.requested), NdaAction.approve, ADMIN, now=NOW
        )
        reject = state_machine.transition(
            _snapshot(NdaStatus.signed), NdaAction.reject, ADMIN, now=NOW
        )
        assert approve.changes["access_expires_at"] is None
        assert reject.changes["access_expires_at"] is None


class TestAllowedActions:
    def test_admin_on_requested(self):
        assert allowed_actions(NdaStatus.requested, ADMIN) == [
            NdaAction.approve,
            NdaAction.reject,
        ]

    def test_system_on_approved(self):
        assert allowed_actions(NdaStatus.approved, SYSTEM_ACTOR) == [
            NdaAction.upload_signed
        ]

    def test_nothing_leaves_terminal_states(self):
        for actor in (ADMIN, SYSTEM_ACTOR, INVESTOR):
            assert allowed_actions(NdaStatus.rejected, actor) == []
            assert allowed_actions(NdaStatus.verified, actor) == []


class TestApply:
    def test_apply_persists_and_returns_side_effect(self, db_session, make_request, idea):
        nda = make_request()
        result = state_machine.apply(db_session, nda.id, NdaAction.approve, ADMIN)

        assert result.request.status == NdaStatus.approved
        assert result.request.access_expires_at is None
        assert len(result.side_effects) == 1
        effect = result.side_effects[0]
        assert effect.event == EventType.nda_approved
        assert effect.payload["contact_email"] == "investor@example.com"
        assert effect.payload["idea_title"] == idea.title
        assert effect.payload["status"] == "approved"

    def test_apply_rejects_invalid_without_writing(self, db_session, make_request):
        nda = make_request(NdaStatus.rejected)
        with pytest.raises(InvalidTransition):
            state_machine.apply(db_session, nda.id, NdaAction.approve, ADMIN)
        db_session.expire_all()
        assert db_session.get(NdaRequest, nda.id).status == NdaStatus.rejected

    def test_verify_payload_carries_expiry(self, db_session, make_request):
        nda = make_request(NdaStatus.signed)
        result = state_machine.apply(
            db_session, nda.id, NdaAction.verify, SYSTEM_ACTOR, now=NOW
        )
        assert result.side_effects[0].event == EventType.nda_verified
        assert result.side_effects[0].payload["access_expires_at"] == (
            NOW + timedelta(days=7)
        ).isoformat()

    def test_reject_after_signing_clears_document_path(
        self, db_session, make_request
    ):
        nda = make_request(NdaStatus.signed)
        result = state_machine.apply(db_session, nda.id, NdaAction.reject, ADMIN)

        assert result.request.status == NdaStatus.rejected
        assert result.request.signed_document_path is None
        assert result.request.access_expires_at is None

    def test_reject_plan_clears_document_path(self):
        plan = state_machine.transition(
            _snapshot(NdaStatus.signed, signed_document_path="signed/x/y/nda.pdf"),
            NdaAction.reject,
            ADMIN,
            now=NOW,
        )
        assert plan.changes["signed_document_path"] is None
