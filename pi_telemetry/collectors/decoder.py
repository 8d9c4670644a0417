"""
Decoder for raw MQTT telemetry messages
Turns (topic, payload) into a TelemetryMessage without doing any I/O
"""

from datetime import datetime, timezone
from typing import Callable, Optional, Union

from pydantic import ValidationError

from pi_telemetry.schemas.telemetry import MqttPayload, TelemetryMessage

UNKNOWN_DEVICE = "unknown"


class DecodeError(ValueError):
    """Raised when a payload cannot be parsed into a telemetry record"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_device_id(topic: str) -> str:
    """Return the middle segment of ``<prefix>/<device_id>/<suffix>``"""
    parts = topic.split("/")
    if len(parts) < 2 or not parts[1]:
        return UNKNOWN_DEVICE
    return parts[1]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime, or None if it can't be parsed"""
    if not value:
        return None

    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        # offsets near year 1 or 9999 can push the UTC instant out of range
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def decode_message(
    topic: str,
    payload: Union[bytes, bytearray, str],
    clock: Callable[[], datetime] = utcnow,
) -> TelemetryMessage:
    """Decode one MQTT publish.

    A missing or malformed ``ts`` silently falls back to ``clock()``; only a
    structurally invalid payload raises :class:`DecodeError`.
    """
    try:
        data = MqttPayload.model_validate_json(payload)
    except ValidationError as exc:
        raise DecodeError(f"invalid telemetry payload on {topic!r}: {exc.error_count()} error(s)") from exc

    timestamp = parse_timestamp(data.ts) or clock()

    return TelemetryMessage(
        device_id=extract_device_id(topic),
        temperature_c=data.temperature_c,
        humidity_pct=data.humidity_pct,
        timestamp=timestamp,
    )
