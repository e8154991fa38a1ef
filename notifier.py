import logging
from typing import Callable

from firebase_admin import messaging

logger = logging.getLogger(__name__)

Sender = Callable[[messaging.Message], str]

DEFAULT_TOPIC = "admins"


def topic_condition(topic: str) -> str:
    return f"'{topic}' in topics"


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def event_notification(data: dict) -> tuple[messaging.Notification, dict]:
    device_id = str(data.get("deviceId") or "Unknown device")
    message = str(data.get("message") or "New event detected")
    priority = str(data.get("priority") or "medium")
    event_type = str(data.get("type") or "unknown")

    notification = messaging.Notification(
        title=f"{event_type.upper()} from {device_id}",
        body=f"{message} (Priority: {priority})",
    )
    fields = {
        "deviceId": device_id,
        "message": message,
        "priority": priority,
        "type": event_type,
        "value": _as_text(data.get("value")),
        "timestamp": _as_text(data.get("timestamp")),
    }
    return notification, fields


def notify_new_event(event_id: str, data: dict | None, send: Sender, topic: str = DEFAULT_TOPIC) -> str | None:
    """Push a newly created event document to the admin topic.

    Falls back once to a topic-condition send carrying the notification only.
    Returns the FCM message id, or None when nothing was delivered.
    """
    if not data:
        logger.info("Event %s has no data, skipping notification", event_id)
        return None

    notification, fields = event_notification(data)
    fields["eventId"] = str(event_id)
    logger.info("Sending event %s to FCM topic %s", event_id, topic)

    primary = messaging.Message(
        topic=topic,
        notification=notification,
        data=fields,
        # Same event delivered twice collapses into one notification on the device.
        android=messaging.AndroidConfig(
            collapse_key=str(event_id),
            notification=messaging.AndroidNotification(tag=str(event_id)),
        ),
    )
    try:
        response = send(primary)
        logger.info("FCM notification sent for event %s: %s", event_id, response)
        return response
    except Exception as exc:  # noqa: BLE001
        logger.error("FCM error for event %s: %s", event_id, exc)

    fallback = messaging.Message(condition=topic_condition(topic), notification=notification)
    try:
        response = send(fallback)
        logger.info("Fallback FCM worked for event %s: %s", event_id, response)
        return response
    except Exception as exc:  # noqa: BLE001
        logger.error("Fallback FCM also failed for event %s: %s", event_id, exc)
        return None
