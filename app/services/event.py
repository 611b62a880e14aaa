import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    nda_requested = "nda.requested"
    nda_approved = "nda.approved"
    nda_rejected = "nda.rejected"
    nda_signed = "nda.signed"
    nda_verified = "nda.verified"


def publish_event(
    event_type: EventType,
    request_id: str | uuid.UUID,
    payload: dict | None = None,
) -> bool:
    """Fire-and-forget event publishing.

    Queues the notification task once the state write has committed.
    Never raises; returns False when the event could not be queued so the
    caller can report a non-fatal warning.
    """
    try:
        from app.tasks.notifications import send_nda_notification

        send_nda_notification.delay(
            event_type=event_type.value,
            request_id=str(request_id),
            payload=payload or {},
        )
        logger.debug("Published event %s for NDA request %s", event_type.value, request_id)
        return True
    except Exception as e:
        logger.warning(
            "Failed to publish event %s for NDA request %s: %s",
            event_type.value,
            request_id,
            e,
        )
        return False
