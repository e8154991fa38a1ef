import logging
from datetime import datetime, timezone

from firebase_admin import messaging

from notifier import DEFAULT_TOPIC, Sender

logger = logging.getLogger(__name__)


def send_test_notification(send: Sender, topic: str = DEFAULT_TOPIC) -> dict:
    logger.info("Testing FCM on topic %s", topic)
    msg = messaging.Message(
        topic=topic,
        notification=messaging.Notification(
            title="Test Notification",
            body="This is a test message from myPlant functions",
        ),
    )
    try:
        response = send(msg)
    except Exception as exc:  # noqa: BLE001
        logger.error("Test FCM failed: %s", exc)
        return {
            "success": False,
            "error": str(exc),
            "details": f"Make sure FCM is enabled and devices are subscribed to '{topic}' topic",
        }
    logger.info("Test FCM success: %s", response)
    return {"success": True, "message": "Test notification sent successfully!", "response": response}


def ping(now: datetime | None = None) -> dict:
    return {
        "message": "Hello from myPlant functions!",
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
        "status": "working",
    }
