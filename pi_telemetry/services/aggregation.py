"""Time-bucketed aggregation queries over stored readings."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import structlog

from pi_telemetry.database.readings import ReadingStore
from pi_telemetry.schemas.readings import AggregatedReading, CurrentReading

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RangeSpec:
    """How far back a range looks and how wide its buckets are."""

    token: str
    lookback: timedelta
    bucket_width: timedelta


RANGES: Dict[str, RangeSpec] = {
    spec.token: spec
    for spec in (
        RangeSpec("1d", timedelta(days=1), timedelta(minutes=5)),
        RangeSpec("1w", timedelta(days=7), timedelta(hours=1)),
        RangeSpec("1m", timedelta(days=30), timedelta(hours=6)),
        RangeSpec("6m", timedelta(days=180), timedelta(days=1)),
        RangeSpec("1y", timedelta(days=365), timedelta(weeks=1)),
    )
}

DEFAULT_RANGE = "1d"
CURRENT_WINDOW = timedelta(hours=24)


class InvalidRangeError(ValueError):
    """Raised for a range token outside the supported set."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Invalid range. Must be one of: {', '.join(RANGES)}")


def parse_range(token: str) -> RangeSpec:
    try:
        return RANGES[token]
    except KeyError:
        raise InvalidRangeError(token) from None


class AggregationQueryEngine:
    """Answers device, aggregate and health queries for the API layer."""

    def __init__(self, store: ReadingStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def list_devices(self) -> List[str]:
        return self.store.list_devices()

    def query(self, device_id: str, range_token: str) -> List[AggregatedReading]:
        """Bucketed averages for ``device_id`` over the range named by ``range_token``.

        The token is validated before storage is touched. Buckets are aligned
        to the Unix epoch, so boundaries do not move with the current time,
        and buckets without readings are not returned.
        """
        spec = parse_range(range_token)
        since = self._clock() - spec.lookback
        readings = self.store.aggregate(device_id, since, spec.bucket_width)
        logger.debug("Aggregated readings", device_id=device_id, range=spec.token, buckets=len(readings))
        return readings

    def current(self, device_id: str) -> Optional[CurrentReading]:
        latest = self.store.latest_reading(device_id)
        if latest is None:
            return None
        avg_temperature, avg_humidity, count = self.store.window_averages(
            device_id, self._clock() - CURRENT_WINDOW
        )
        return CurrentReading(
            current=latest,
            avg_temperature_c=avg_temperature,
            avg_humidity_pct=avg_humidity,
            reading_count=count,
            window_hours=int(CURRENT_WINDOW.total_seconds() // 3600),
        )

    def health(self) -> bool:
        """True when storage answers a trivial query."""
        try:
            self.store.ping()
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False
        return True
