"""
Persistence writer: the single consumer of the ingest queue
"""

import asyncio
from typing import Callable

import structlog

from pi_telemetry.database.readings import ReadingStore
from pi_telemetry.pipeline.ingest_queue import IngestQueue
from pi_telemetry.schemas.telemetry import TelemetryMessage

logger = structlog.get_logger(__name__)

WriteFn = Callable[[TelemetryMessage], None]


class PersistencePolicy:
    """Decides what happens when a single insert fails"""

    async def persist(self, write: WriteFn, message: TelemetryMessage) -> bool:
        raise NotImplementedError


class DropOnFailure(PersistencePolicy):
    """One attempt; failed records are logged and discarded"""

    async def persist(self, write: WriteFn, message: TelemetryMessage) -> bool:
        try:
            await asyncio.to_thread(write, message)
        except Exception as e:
            logger.error("Failed to insert reading, dropping record",
                         device_id=message.device_id, error=str(e))
            return False
        return True


class RetryWithBackoff(PersistencePolicy):
    """Retry with exponential delay, then discard"""

    def __init__(self, attempts: int = 3, delay: float = 0.5, factor: float = 2.0):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.attempts = attempts
        self.delay = delay
        self.factor = factor

    async def persist(self, write: WriteFn, message: TelemetryMessage) -> bool:
        delay = self.delay
        for attempt in range(1, self.attempts + 1):
            try:
                await asyncio.to_thread(write, message)
                return True
            except Exception as e:
                if attempt == self.attempts:
                    logger.error("Failed to insert reading after retries, dropping record",
                                 device_id=message.device_id, attempts=attempt, error=str(e))
                    return False
                logger.warning("Failed to insert reading, retrying",
                               device_id=message.device_id, attempt=attempt, retry_in=delay, error=str(e))
                await asyncio.sleep(delay)
                delay *= self.factor
        return False


def build_policy(retry_attempts: int, retry_delay: float = 0.5) -> PersistencePolicy:
    """Drop on failure unless retries are configured"""
    if retry_attempts > 0:
        return RetryWithBackoff(attempts=retry_attempts + 1, delay=retry_delay)
    return DropOnFailure()


class PersistenceWriter:
    """Writes queued records to storage one at a time, in queue order"""

    def __init__(self, queue: IngestQueue, store: ReadingStore, policy: PersistencePolicy = None):
        self.queue = queue
        self.store = store
        self.policy = policy or DropOnFailure()
        self.written = 0
        self.failed = 0

    async def run(self) -> None:
        """Consume until the queue reports end of stream"""
        logger.info("Database writer task started")

        async for message in self.queue:
            logger.debug("Writing telemetry message", device_id=message.device_id,
                         ts=message.timestamp.isoformat())
            if await self.policy.persist(self.store.insert_reading, message):
                self.written += 1
            else:
                self.failed += 1

        logger.info("Database writer task ended", written=self.written, failed=self.failed)
