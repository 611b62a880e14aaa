import uuid
from unittest.mock import patch

from app.errors import NotificationFailure
from app.services.event import EventType
from app.services.nda_notifications import render
from app.tasks.notifications import send_nda_notification

REQUEST_ID = str(uuid.uuid4())
PAYLOAD = {
    "contact_email": "investor@example.com",
    "idea_id": str(uuid.uuid4()),
    "idea_title": "Solar Roof Tiles",
    "status": "approved",
    "access_expires_at": None,
}


class TestRender:
    def test_approved_links_to_nda_page(self):
        message = render(EventType.nda_approved, REQUEST_ID, PAYLOAD)
        assert message.to == "investor@example.com"
        assert message.subject == "NDA approved – Solar Roof Tiles"
        assert f"https://ideas.example.com/nda/{REQUEST_ID}" in message.html

    def test_rejected_is_polite(self):
        message = render(EventType.nda_rejected, REQUEST_ID, PAYLOAD)
        assert "not approved at this time" in message.html
        assert message.subject.startswith("NDA request not approved")

    def test_verified_carries_access_link_and_expiry(self):
        payload = dict(PAYLOAD, status="verified", access_expires_at="2026-11-01T10:00:00+00:00")
        message = render(EventType.nda_verified, REQUEST_ID, payload)
        assert f"https://ideas.example.com/access/{REQUEST_ID}" in message.html
        assert "2026-11-01 10:00 UTC" in message.html

    def test_requested_goes_to_admin(self):
        message = render(EventType.nda_requested, REQUEST_ID, PAYLOAD)
        assert message.to == "admin@example.com"

    @patch("app.services.nda_notifications.settings")
    def test_requested_without_admin_inbox(self, mock_settings):
        mock_settings.admin_notification_email = ""
        assert render(EventType.nda_requested, REQUEST_ID, PAYLOAD) is None

    def test_title_falls_back(self):
        payload = dict(PAYLOAD, idea_title=None)
        message = render(EventType.nda_rejected, REQUEST_ID, payload)
        assert message.subject.endswith("– idea")

    def test_title_is_escaped(self):
        payload = dict(PAYLOAD, idea_title="<script>x</script>")
        message = render(EventType.nda_approved, REQUEST_ID, payload)
        assert "<script>" not in message.html


class TestSendNdaNotification:
    @patch("app.services.email.email_client.send", return_value="stub")
    def test_sends(self, mock_send):
        assert send_nda_notification(
            event_type="nda.approved", request_id=REQUEST_ID, payload=PAYLOAD
        ) is True
        message = mock_send.call_args.args[0]
        assert message.to == "investor@example.com"

    @patch("app.services.email.email_client.send")
    def test_failure_is_swallowed(self, mock_send):
        mock_send.side_effect = NotificationFailure("Resend API error 500")
        assert send_nda_notification(
            event_type="nda.rejected", request_id=REQUEST_ID, payload=PAYLOAD
        ) is False
        assert mock_send.call_count == 1

    @patch("app.services.email.email_client.send")
    def test_unknown_event(self, mock_send):
        assert send_nda_notification(
            event_type="nda.exploded", request_id=REQUEST_ID, payload=PAYLOAD
        ) is False
        mock_send.assert_not_called()

    @patch("app.services.nda_notifications.settings")
    @patch("app.services.email.email_client.send")
    def test_no_recipient_skips(self, mock_send, mock_settings):
        mock_settings.admin_notification_email = ""
        assert send_nda_notification(
            event_type="nda.signed", request_id=REQUEST_ID, payload=PAYLOAD
        ) is False
        mock_send.assert_not_called()
