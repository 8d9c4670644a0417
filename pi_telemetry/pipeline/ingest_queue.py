"""
Decoupling queue between the MQTT subscriber and the persistence writer
"""

import asyncio
from collections import deque
from enum import Enum
from typing import Deque, Optional

import structlog

from pi_telemetry.schemas.telemetry import TelemetryMessage

logger = structlog.get_logger(__name__)


class OverflowPolicy(str, Enum):
    """What a full queue does with a new record"""
    drop_oldest = "drop_oldest"
    drop_newest = "drop_newest"


class QueueClosedError(RuntimeError):
    """Raised when pushing to a queue that has been closed"""


class IngestQueue:
    """FIFO channel of decoded records with a single consumer.

    ``push`` never blocks. With ``maxsize=0`` the queue is unbounded; otherwise
    the overflow policy decides which record is discarded when it is full.
    After ``close()`` the consumer drains what is left and then receives
    ``None`` (end of stream).
    """

    def __init__(self, maxsize: int = 0, overflow: OverflowPolicy = OverflowPolicy.drop_oldest):
        if maxsize < 0:
            raise ValueError("maxsize must be >= 0")
        self.maxsize = maxsize
        self.overflow = OverflowPolicy(overflow)
        self.dropped = 0
        self._items: Deque[TelemetryMessage] = deque()
        self._not_empty = asyncio.Event()
        self._closed = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, message: TelemetryMessage) -> bool:
        """Enqueue a record; returns False if the record itself was dropped"""
        if self._closed:
            raise QueueClosedError("ingest queue is closed")

        if self.maxsize and len(self._items) >= self.maxsize:
            self.dropped += 1
            if self.overflow is OverflowPolicy.drop_newest:
                logger.warning("Ingest queue full, dropping newest record",
                               device_id=message.device_id, maxsize=self.maxsize, dropped=self.dropped)
                return False
            evicted = self._items.popleft()
            logger.warning("Ingest queue full, dropping oldest record",
                           device_id=evicted.device_id, maxsize=self.maxsize, dropped=self.dropped)

        self._items.append(message)
        self._not_empty.set()
        return True

    async def get(self) -> Optional[TelemetryMessage]:
        """Wait for the next record; None once the queue is closed and empty"""
        while not self._items:
            if self._closed:
                return None
            self._not_empty.clear()
            await self._not_empty.wait()
        return self._items.popleft()

    def close(self) -> None:
        self._closed = True
        self._not_empty.set()

    def __aiter__(self):
        return self

    async def __anext__(self) -> TelemetryMessage:
        message = await self.get()
        if message is None:
            raise StopAsyncIteration
        return message
