import logging

from app.celery_app import celery_app
from app.errors import NotificationFailure
from app.metrics import NDA_NOTIFICATIONS

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.notifications.send_nda_notification",
    ignore_result=True,
    max_retries=0,
)
def send_nda_notification(
    event_type: str,
    request_id: str,
    payload: dict | None = None,
) -> bool:
    """Email the party interested in an NDA lifecycle event.

    One attempt only. Failures are logged and counted; the committed state
    change that produced the event is never affected.
    """
    from app.services.email import email_client
    from app.services.event import EventType
    from app.services.nda_notifications import render

    try:
        event = EventType(event_type)
    except ValueError:
        logger.warning("Unknown NDA event type %s for request %s", event_type, request_id)
        NDA_NOTIFICATIONS.labels(event=event_type, outcome="unknown").inc()
        return False

    message = render(event, request_id, payload or {})
    if message is None:
        logger.info("No recipient for %s on NDA request %s", event_type, request_id)
        NDA_NOTIFICATIONS.labels(event=event_type, outcome="skipped").inc()
        return False

    try:
        email_client.send(message)
    except NotificationFailure as e:
        logger.warning(
            "Notification %s for NDA request %s failed: %s", event_type, request_id, e
        )
        NDA_NOTIFICATIONS.labels(event=event_type, outcome="failed").inc()
        return False

    NDA_NOTIFICATIONS.labels(event=event_type, outcome="sent").inc()
    logger.info("Sent %s notification for NDA request %s", event_type, request_id)
    return True
