"""
Lifecycle and supervision of the ingestion pipeline tasks
"""

import asyncio
import os
import signal
from datetime import timedelta
from typing import Callable, Optional

import structlog

from pi_telemetry.collectors.mqtt_subscriber import MqttSubscriber
from pi_telemetry.core.config import Settings
from pi_telemetry.database.readings import ReadingStore
from pi_telemetry.pipeline.ingest_queue import IngestQueue, OverflowPolicy
from pi_telemetry.pipeline.retention import RetentionSweeper
from pi_telemetry.pipeline.writer import PersistenceWriter, build_policy

logger = structlog.get_logger(__name__)


class PipelineFailure(RuntimeError):
    """A long-running pipeline task ended while the pipeline was running"""


def terminate_process(error: PipelineFailure) -> None:
    """Ask the process to shut down so an external supervisor restarts it"""
    logger.critical("Terminating process after pipeline failure", error=str(error))
    os.kill(os.getpid(), signal.SIGTERM)


class TelemetryPipeline:
    """Runs subscriber, writer and sweeper; drains the queue on stop"""

    def __init__(
        self,
        queue: IngestQueue,
        subscriber: MqttSubscriber,
        writer: PersistenceWriter,
        sweeper: RetentionSweeper,
        drain_timeout: float = 10.0,
        on_failure: Callable[[PipelineFailure], None] = terminate_process,
    ):
        self.queue = queue
        self.subscriber = subscriber
        self.writer = writer
        self.sweeper = sweeper
        self.drain_timeout = drain_timeout
        self._on_failure = on_failure
        self._stopping = False
        self._writer_task: Optional[asyncio.Task] = None
        self._sweeper_task: Optional[asyncio.Task] = None
        self._subscriber_task: Optional[asyncio.Task] = None
        self._supervisor: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings, store: ReadingStore) -> "TelemetryPipeline":
        queue = IngestQueue(
            maxsize=settings.ingest_queue_maxsize,
            overflow=OverflowPolicy(settings.ingest_overflow_policy),
        )
        subscriber = MqttSubscriber(
            queue,
            broker_url=settings.mqtt_broker_url,
            topic_filter=settings.mqtt_topic_filter,
            client_id=settings.mqtt_client_id,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            keepalive=settings.mqtt_keepalive,
            reconnect_delay=settings.mqtt_reconnect_delay,
        )
        writer = PersistenceWriter(
            queue, store,
            policy=build_policy(settings.persistence_retry_attempts, settings.persistence_retry_delay),
        )
        sweeper = RetentionSweeper(
            store,
            horizon=timedelta(days=settings.retention_days),
            interval=settings.retention_interval,
        )
        return cls(queue, subscriber, writer, sweeper, drain_timeout=settings.shutdown_drain_timeout)

    @property
    def running(self) -> bool:
        return self._supervisor is not None and not self._stopping

    async def start(self):
        """Start all tasks and the supervisor watching them"""
        self._stopping = False
        self._writer_task = asyncio.create_task(self.writer.run(), name="persistence-writer")
        self._sweeper_task = asyncio.create_task(self.sweeper.run(), name="retention-sweeper")
        self._subscriber_task = self.subscriber.start()
        self._supervisor = asyncio.create_task(self._supervise(), name="pipeline-supervisor")
        logger.info("All pipeline tasks started")

    async def _supervise(self):
        tasks = {self._writer_task, self._sweeper_task, self._subscriber_task}
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        if self._stopping:
            return

        task = done.pop()
        error = PipelineFailure(f"{task.get_name()} ended unexpectedly")
        if not task.cancelled() and task.exception() is not None:
            logger.critical("Pipeline task crashed", task=task.get_name(), exc_info=task.exception())
        else:
            logger.critical("Pipeline task ended", task=task.get_name())
        self._on_failure(error)

    async def stop(self):
        """Stop ingestion, then let the writer drain what is already queued"""
        if self._supervisor is None:
            return
        self._stopping = True

        await self.subscriber.stop()
        self._sweeper_task.cancel()
        self.queue.close()

        pending = len(self.queue)
        try:
            await asyncio.wait_for(self._writer_task, timeout=self.drain_timeout)
            logger.info("Ingest queue drained", drained=pending)
        except asyncio.TimeoutError:
            logger.warning("Ingest queue drain timed out, discarding remaining records",
                           remaining=len(self.queue))
        except Exception as e:
            logger.error("Writer failed while draining", error=str(e))

        await asyncio.gather(self._sweeper_task, self._supervisor, return_exceptions=True)
        self._supervisor = None
        logger.info("Pipeline stopped")
