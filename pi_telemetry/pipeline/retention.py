"""
Retention sweeper: periodically deletes readings past the retention horizon
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from pi_telemetry.database.readings import ReadingStore

logger = structlog.get_logger(__name__)


class RetentionSweeper:
    """Hourly bulk delete of old readings"""

    def __init__(
        self,
        store: ReadingStore,
        horizon: timedelta = timedelta(days=365),
        interval: float = 3600,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.horizon = horizon
        self.interval = interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def sweep_once(self) -> Optional[int]:
        """Delete expired readings; returns the count, or None if the delete failed"""
        cutoff = self._clock() - self.horizon
        try:
            deleted = self.store.delete_older_than(cutoff)
        except Exception as e:
            logger.error("Failed to cleanup old data", cutoff=cutoff.isoformat(), error=str(e))
            return None

        if deleted > 0:
            logger.info("Cleaned up old readings", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    async def run(self) -> None:
        """Sweep now, then every ``interval`` seconds until cancelled"""
        logger.info("Database cleanup task started", interval=self.interval,
                    horizon_days=self.horizon.days)
        while True:
            await asyncio.to_thread(self.sweep_once)
            await asyncio.sleep(self.interval)
