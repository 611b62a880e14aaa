import uuid
from unittest.mock import patch

from app.services.event import EventType, publish_event
from app.services.nda_state_machine import SideEffect, dispatch_side_effects


class TestEventType:
    def test_all_event_types_have_dotted_values(self) -> None:
        for et in EventType:
            assert et.value.startswith("nda."), f"{et.name} should be an nda event"

    def test_event_type_count(self) -> None:
        assert len(EventType) == 5

    def test_lifecycle_events(self) -> None:
        assert EventType.nda_requested.value == "nda.requested"
        assert EventType.nda_approved.value == "nda.approved"
        assert EventType.nda_rejected.value == "nda.rejected"
        assert EventType.nda_signed.value == "nda.signed"
        assert EventType.nda_verified.value == "nda.verified"


class TestPublishEvent:
    @patch("app.tasks.notifications.send_nda_notification.delay")
    def test_publish_queues_notification(self, mock_delay) -> None:
        request_id = uuid.uuid4()
        assert publish_event(EventType.nda_approved, request_id, {"a": 1}) is True
        mock_delay.assert_called_once_with(
            event_type="nda.approved",
            request_id=str(request_id),
            payload={"a": 1},
        )

    @patch("app.tasks.notifications.send_nda_notification.delay")
    def test_publish_defaults_payload(self, mock_delay) -> None:
        publish_event(EventType.nda_rejected, uuid.uuid4())
        assert mock_delay.call_args.kwargs["payload"] == {}

    @patch("app.tasks.notifications.send_nda_notification.delay")
    def test_publish_never_raises(self, mock_delay) -> None:
        mock_delay.side_effect = ConnectionError("broker down")
        assert publish_event(EventType.nda_verified, uuid.uuid4()) is False


class TestDispatchSideEffects:
    @patch("app.tasks.notifications.send_nda_notification.delay")
    def test_failures_become_warnings(self, mock_delay) -> None:
        mock_delay.side_effect = [None, ConnectionError("broker down")]
        effects = [
            SideEffect(event=EventType.nda_signed, request_id=uuid.uuid4()),
            SideEffect(event=EventType.nda_verified, request_id=uuid.uuid4()),
        ]
        assert dispatch_side_effects(effects) == [
            "Notification for nda.verified was not queued"
        ]
