"""
Telemetry message types produced by the MQTT decoder
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MqttPayload(BaseModel):
    """Wire payload published by the sensors"""

    # Strict: numbers must be JSON numbers and ts must be a JSON string
    model_config = ConfigDict(strict=True, extra="ignore")

    temperature_c: Optional[float] = None
    humidity_pct: Optional[float] = None
    ts: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TelemetryMessage:
    """A decoded telemetry record in flight between the subscriber and the writer"""

    device_id: str
    temperature_c: Optional[float]
    humidity_pct: Optional[float]
    timestamp: datetime
