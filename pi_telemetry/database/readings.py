"""
Storage gateway for the readings table
Each method runs a single statement in its own session
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy import desc, func, text
from sqlalchemy.orm import Session
import structlog

from pi_telemetry.database.functions import bucket_start
from pi_telemetry.models.reading import Reading
from pi_telemetry.schemas.readings import AggregatedReading, ReadingResponse
from pi_telemetry.schemas.telemetry import TelemetryMessage

logger = structlog.get_logger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes returned by drivers without time zone support"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReadingStore:
    """Reads and writes telemetry rows through a shared session factory"""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def insert_reading(self, message: TelemetryMessage) -> None:
        """Append one reading"""
        with self._session_factory() as db:
            db.add(Reading(
                device_id=message.device_id,
                ts=message.timestamp,
                temperature_c=message.temperature_c,
                humidity_pct=message.humidity_pct,
            ))
            db.commit()

    def list_devices(self) -> List[str]:
        """Distinct device ids, ascending"""
        with self._session_factory() as db:
            rows = db.query(Reading.device_id).distinct().order_by(Reading.device_id).all()
        return [row.device_id for row in rows]

    def aggregate(self, device_id: str, since: datetime, bucket_width: timedelta) -> List[AggregatedReading]:
        """Per-bucket averages of readings at or after ``since``, ascending by bucket"""
        bucket = bucket_start(Reading.ts, bucket_width)
        with self._session_factory() as db:
            rows = (
                db.query(
                    bucket.label("bucket"),
                    func.avg(Reading.temperature_c).label("avg_temperature_c"),
                    func.avg(Reading.humidity_pct).label("avg_humidity_pct"),
                )
                .filter(Reading.device_id == device_id, Reading.ts >= since)
                .group_by(bucket)
                .order_by(bucket)
                .all()
            )

        return [
            AggregatedReading(
                ts=as_utc(row.bucket),
                avg_temperature_c=row.avg_temperature_c,
                avg_humidity_pct=row.avg_humidity_pct,
            )
            for row in rows
        ]

    def latest_reading(self, device_id: str) -> Optional[ReadingResponse]:
        """Most recent reading for a device"""
        with self._session_factory() as db:
            reading = (
                db.query(Reading)
                .filter(Reading.device_id == device_id)
                .order_by(desc(Reading.ts), desc(Reading.id))
                .first()
            )
            if reading is None:
                return None
            latest = ReadingResponse.model_validate(reading)
        return latest.model_copy(update={"ts": as_utc(latest.ts)})

    def window_averages(self, device_id: str, since: datetime) -> Tuple[Optional[float], Optional[float], int]:
        """(avg temperature, avg humidity, row count) for readings at or after ``since``"""
        with self._session_factory() as db:
            row = (
                db.query(
                    func.avg(Reading.temperature_c),
                    func.avg(Reading.humidity_pct),
                    func.count(Reading.id),
                )
                .filter(Reading.device_id == device_id, Reading.ts >= since)
                .one()
            )
        return row[0], row[1], int(row[2] or 0)

    def delete_older_than(self, cutoff: datetime) -> int:
        """Bulk delete readings with ts < cutoff; returns the number of rows removed"""
        with self._session_factory() as db:
            deleted = db.query(Reading).filter(Reading.ts < cutoff).delete(synchronize_session=False)
            db.commit()
        return deleted

    def ping(self) -> None:
        """Raise if the database cannot be reached"""
        with self._session_factory() as db:
            db.execute(text("SELECT 1"))
