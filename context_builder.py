import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from timestamps import format_time_ago, is_valid_timestamp, local_now, parse_timestamp, time_range_floor

logger = logging.getLogger(__name__)

PERSONA = "You are an IoT assistant for a smart agriculture system called myPlant."

SENSOR_GUIDE = """SENSOR INTERPRETATION GUIDE:
- moisture: Higher values (4000+) = drier soil, Lower values = wetter soil
- rain: 1 = raining, 0 = not raining
- humidity: Percentage (0-100%)
- temperature: Celsius
- lightDigital: Higher values = brighter light"""

SINGLE_DEVICE_GUIDANCE = """Answer the user's question naturally and helpfully using this data.
If the user asks about sensor readings, explain what the values mean for plant health.
Be concise but friendly in your responses. Point out any concerning readings."""

MULTI_DEVICE_GUIDANCE = """When answering questions:
- Specify which device's data you're referring to
- Compare readings between devices if relevant
- Help identify any devices that might need attention
- Explain what sensor values mean for plant health
- Be concise but friendly in your responses."""

HISTORICAL_GUIDANCE = """When answering questions about historical data:
- Identify trends and patterns over time
- Note any anomalies or concerning readings
- Provide insights about plant health and environmental conditions
- Compare current vs historical performance if relevant
- Explain what the data means for plant care
- Be concise but analytical in your responses."""

NO_READINGS_REPLY = "No sensor readings found. Please check if your devices are connected."
NO_VALID_READINGS_REPLY = "No valid recent sensor readings found. Devices may be syncing."

LATEST_WINDOW_DEVICE, LATEST_KEEP_DEVICE = 10, 1
LATEST_WINDOW_ALL, LATEST_KEEP_ALL = 20, 5
HISTORICAL_WINDOW, HISTORICAL_KEEP = 100, 50
EVENTS_WINDOW, EVENTS_KEEP = 15, 10


@dataclass
class ContextResult:
    text: str = ""
    reply: str | None = None
    readings: int = 0
    events: int = 0
    devices: int = 0

    @property
    def short_circuited(self) -> bool:
        return self.reply is not None


def fetch(label: str, call: Callable, *, fatal: bool, fallback=None):
    """Run one store read; non-fatal reads log and return ``fallback`` on failure."""
    if fatal:
        return call()
    try:
        return call()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not fetch %s: %s", label, exc)
        return fallback


def format_reading(reading: dict) -> str:
    fields = []
    if reading.get("temperature") is not None:
        fields.append(f"Temperature: {reading['temperature']}°C")
    if reading.get("humidity") is not None:
        fields.append(f"Humidity: {reading['humidity']}%")
    if reading.get("moisture") is not None:
        fields.append(f"Soil Moisture: {reading['moisture']} (lower=wetter)")
    if reading.get("rain") is not None:
        fields.append(f"Rain: {'Yes' if reading['rain'] == 1 else 'No'}")
    if reading.get("sound") is not None:
        fields.append(f"Sound: {reading['sound']}")
    if reading.get("lightAnalog") is not None:
        fields.append(f"Light Analog: {reading['lightAnalog']}")
    if reading.get("lightDigital") is not None:
        fields.append(f"Light Digital: {reading['lightDigital']}")
    return ", ".join(fields)


def format_events(events: list[dict]) -> str:
    return "\n".join(
        f"[{e.get('timestamp')}] {e.get('deviceId')}: {e.get('type')} - {e.get('message')} ({e.get('priority')} priority)"
        for e in events
    )


def _device_lines(devices: dict[str, dict], now: datetime, label: str = "Last") -> str:
    return "\n".join(
        f"- {device.get('name')}: {device.get('status')}, {label}: {format_time_ago(device.get('lastSeen'), now)}"
        for device in devices.values()
    )


def render_latest(readings: list[dict], devices: dict[str, dict], device_id: str | None, now: datetime) -> str:
    if device_id:
        reading = readings[0]
        device = devices.get(device_id)
        if device:
            device_status = f"Status: {device.get('status')}, Last Seen: {format_time_ago(device.get('lastSeen'), now)}"
        else:
            device_status = "Status: Unknown"
        return (
            f"{PERSONA}\n"
            f"Current time: {now.isoformat()}\n\n"
            "DEVICE INFORMATION:\n"
            f"- Device: {device_id}\n"
            f"- {device_status}\n\n"
            f"LATEST SENSOR READING (timestamp: {reading.get('timestamp')}):\n"
            f"{format_reading(reading)}\n\n"
            f"{SENSOR_GUIDE}\n\n"
            f"{SINGLE_DEVICE_GUIDANCE}\n"
        )

    reading_blocks = "\n\n".join(
        f"Device {r.get('deviceId')} ({format_time_ago(r.get('timestamp'), now)}):\n{format_reading(r)}" for r in readings
    )
    return (
        f"{PERSONA}\n"
        f"Current time: {now.isoformat()}\n\n"
        "DEVICES SUMMARY:\n"
        f"{_device_lines(devices, now)}\n\n"
        "LATEST READINGS FROM ALL DEVICES:\n"
        f"{reading_blocks}\n\n"
        f"{SENSOR_GUIDE}\n\n"
        f"{MULTI_DEVICE_GUIDANCE}\n"
    )


def render_historical(
    readings: list[dict], time_range: str, devices: dict[str, dict], device_id: str | None, now: datetime
) -> str:
    device_context = f" from device: {device_id}" if device_id else " from all devices"
    reading_blocks = "\n\n".join(
        f"[{r.get('timestamp')}] Device {r.get('deviceId')}:\n{format_reading(r)}" for r in readings
    )
    return (
        f"{PERSONA}\n"
        f"Analyzing historical data{device_context} for the {time_range} period.\n\n"
        "DEVICE STATUS:\n"
        f"{_device_lines(devices, now, label='Last Seen')}\n\n"
        f"HISTORICAL SENSOR READINGS ({len(readings)} valid data points):\n"
        f"{reading_blocks}\n\n"
        f"{SENSOR_GUIDE}\n\n"
        f"{HISTORICAL_GUIDANCE}\n"
    )


def _latest_readings(readings_repo, filters: dict | None, device_id: str | None) -> tuple[list[dict], str | None]:
    window, keep = (LATEST_WINDOW_DEVICE, LATEST_KEEP_DEVICE) if device_id else (LATEST_WINDOW_ALL, LATEST_KEEP_ALL)
    rows = fetch("readings", lambda: readings_repo.query_recent(filters, window), fatal=True)
    if not rows:
        return [], NO_READINGS_REPLY
    valid = [r for r in rows if is_valid_timestamp(r.get("timestamp"))][:keep]
    if not valid:
        return [], NO_VALID_READINGS_REPLY
    return valid, None


def _historical_readings(
    readings_repo, filters: dict | None, time_range: str, now: datetime
) -> tuple[list[dict], str | None]:
    floor = time_range_floor(time_range, now)
    rows = fetch("readings", lambda: readings_repo.query_recent(filters, HISTORICAL_WINDOW), fatal=True)
    if not rows:
        return [], f"No historical data found for the specified time range ({time_range})."
    valid = [
        r
        for r in rows
        if is_valid_timestamp(r.get("timestamp")) and parse_timestamp(r.get("timestamp")) >= floor
    ][:HISTORICAL_KEEP]
    if not valid:
        return [], f"No valid historical data found for the {time_range} period."
    return valid, None


def build_context(
    readings_repo,
    devices_repo,
    events_repo,
    device_id: str | None = None,
    time_range: str = "latest",
    now: datetime | None = None,
) -> ContextResult:
    now = now or local_now()
    devices = fetch("device status", devices_repo.list_all, fatal=False, fallback={})
    filters = {"deviceId": device_id} if device_id else None

    if time_range == "latest":
        readings, reply = _latest_readings(readings_repo, filters, device_id)
    else:
        readings, reply = _historical_readings(readings_repo, filters, time_range, now)
    if reply is not None:
        return ContextResult(reply=reply, devices=len(devices))

    if time_range == "latest":
        text = render_latest(readings, devices, device_id, now)
    else:
        text = render_historical(readings, time_range, devices, device_id, now)

    recent_events = fetch("events", lambda: events_repo.query_recent(None, EVENTS_WINDOW), fatal=False, fallback=[])
    recent_events = [e for e in recent_events if is_valid_timestamp(e.get("timestamp"))][:EVENTS_KEEP]
    if recent_events:
        text += f"\n\nRecent System Events (last {EVENTS_KEEP} valid events):\n{format_events(recent_events)}"

    logger.info(
        "Context loaded: readings=%d events=%d devices=%d device_filter=%s time_range=%s",
        len(readings),
        len(recent_events),
        len(devices),
        device_id,
        time_range,
    )
    return ContextResult(text=text, readings=len(readings), events=len(recent_events), devices=len(devices))
