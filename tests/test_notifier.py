from diagnostics import ping, send_test_notification
from fakes import RecordingSender
from notifier import notify_new_event


def test_primary_dispatch_to_admins_topic(sender):
    data = {
        "deviceId": "esp32-a",
        "message": "Soil is dry",
        "priority": "high",
        "type": "moisture",
        "value": 4210,
        "timestamp": "2025-06-10T11:55:00Z",
    }
    response = notify_new_event("evt-1", data, sender)

    assert response == "projects/myplant/messages/1"
    assert len(sender.sent) == 1
    msg = sender.sent[0]
    assert msg.topic == "admins"
    assert msg.condition is None
    assert msg.notification.title == "MOISTURE from esp32-a"
    assert msg.notification.body == "Soil is dry (Priority: high)"
    assert msg.data == {
        "deviceId": "esp32-a",
        "message": "Soil is dry",
        "priority": "high",
        "type": "moisture",
        "value": "4210",
        "timestamp": "2025-06-10T11:55:00Z",
        "eventId": "evt-1",
    }
    assert msg.android.collapse_key == "evt-1"


def test_missing_fields_use_defaults(sender):
    notify_new_event("evt-2", {"unrelated": True}, sender)

    msg = sender.sent[0]
    assert msg.notification.title == "UNKNOWN from Unknown device"
    assert msg.notification.body == "New event detected (Priority: medium)"
    assert msg.data["value"] == ""
    assert msg.data["timestamp"] == ""


def test_empty_document_is_skipped(sender):
    assert notify_new_event("evt-3", None, sender) is None
    assert notify_new_event("evt-3", {}, sender) is None
    assert sender.sent == []


def test_fallback_uses_topic_condition_without_data():
    sender = RecordingSender(failures=[RuntimeError("topic send failed")])
    response = notify_new_event("evt-4", {"deviceId": "esp32-b", "type": "rain"}, sender)

    assert response == "projects/myplant/messages/2"
    primary, fallback = sender.sent
    assert primary.topic == "admins"
    assert fallback.topic is None
    assert fallback.condition == "'admins' in topics"
    assert fallback.data is None
    assert fallback.notification.title == "RAIN from esp32-b"


def test_double_failure_is_swallowed(caplog):
    sender = RecordingSender(failures=[RuntimeError("primary"), RuntimeError("fallback")])
    assert notify_new_event("evt-5", {"deviceId": "esp32-b"}, sender) is None
    assert len(sender.sent) == 2
    assert "Fallback FCM also failed" in caplog.text


def test_duplicate_delivery_sends_same_collapse_key(sender):
    notify_new_event("evt-6", {"deviceId": "esp32-a"}, sender)
    notify_new_event("evt-6", {"deviceId": "esp32-a"}, sender)
    assert [m.android.collapse_key for m in sender.sent] == ["evt-6", "evt-6"]


def test_send_test_notification_success(sender):
    result = send_test_notification(sender)
    assert result == {
        "success": True,
        "message": "Test notification sent successfully!",
        "response": "projects/myplant/messages/1",
    }
    assert sender.sent[0].topic == "admins"


def test_send_test_notification_surfaces_error():
    sender = RecordingSender(failures=[ValueError("The default Firebase app does not exist.")])
    result = send_test_notification(sender)
    assert result["success"] is False
    assert result["error"] == "The default Firebase app does not exist."
    assert "'admins' topic" in result["details"]


def test_ping_has_no_side_effects():
    result = ping()
    assert result["message"] == "Hello from myPlant functions!"
    assert result["status"] == "working"
    assert result["timestamp"]
