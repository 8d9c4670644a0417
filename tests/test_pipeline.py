import asyncio
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from pi_telemetry.collectors.mqtt_subscriber import MqttSubscriber
from pi_telemetry.core.config import Settings
from pi_telemetry.pipeline.ingest_queue import IngestQueue, OverflowPolicy
from pi_telemetry.pipeline.retention import RetentionSweeper
from pi_telemetry.pipeline.runner import PipelineFailure, TelemetryPipeline
from pi_telemetry.pipeline.writer import PersistenceWriter, RetryWithBackoff
from pi_telemetry.schemas.telemetry import TelemetryMessage
from tests.test_mqtt_subscriber import FakeClient


def message(n):
    return TelemetryMessage(
        device_id="d1",
        temperature_c=float(n),
        humidity_pct=None,
        timestamp=datetime(2024, 1, 1, 0, n, tzinfo=timezone.utc),
    )


class TestTelemetryPipeline(unittest.IsolatedAsyncioTestCase):
    """Test cases for pipeline lifecycle"""

    def setUp(self):
        self.store = MagicMock()
        self.store.delete_older_than.return_value = 0
        self.queue = IngestQueue()
        self.on_failure = MagicMock()
        self.pipeline = TelemetryPipeline(
            self.queue,
            MqttSubscriber(self.queue, reconnect_delay=0, client_factory=lambda: FakeClient(block=True)),
            PersistenceWriter(self.queue, self.store),
            RetentionSweeper(self.store, interval=3600),
            drain_timeout=5,
            on_failure=self.on_failure,
        )

    async def test_stop_drains_queued_records(self):
        await self.pipeline.start()
        self.assertTrue(self.pipeline.running)
        for n in range(5):
            self.queue.push(message(n))

        await self.pipeline.stop()

        self.assertFalse(self.pipeline.running)
        written = [call.args[0].temperature_c for call in self.store.insert_reading.call_args_list]
        self.assertEqual(written, [0.0, 1.0, 2.0, 3.0, 4.0])
        self.on_failure.assert_not_called()

    async def test_sweeper_runs_on_start(self):
        await self.pipeline.start()
        for _ in range(100):
            if self.store.delete_older_than.called:
                break
            await asyncio.sleep(0.01)
        await self.pipeline.stop()

        self.store.delete_older_than.assert_called_once()

    async def test_unexpected_task_exit_is_reported(self):
        await self.pipeline.start()
        # ending the queue makes the writer return while the pipeline is running
        self.queue.close()

        for _ in range(100):
            if self.on_failure.called:
                break
            await asyncio.sleep(0.01)
        await self.pipeline.stop()

        self.on_failure.assert_called_once()
        error = self.on_failure.call_args.args[0]
        self.assertIsInstance(error, PipelineFailure)
        self.assertIn("persistence-writer", str(error))

    async def test_stop_without_start(self):
        await self.pipeline.stop()
        self.assertFalse(self.pipeline.running)


class TestFromSettings(unittest.TestCase):

    def test_builds_components_from_settings(self):
        settings = Settings(
            mqtt_broker_url="mqtt://broker:1884",
            mqtt_topic_filter="home/+/telemetry",
            ingest_queue_maxsize=50,
            ingest_overflow_policy="drop_newest",
            persistence_retry_attempts=2,
            retention_days=30,
            retention_interval=60,
        )
        pipeline = TelemetryPipeline.from_settings(settings, MagicMock())

        self.assertEqual(pipeline.queue.maxsize, 50)
        self.assertIs(pipeline.queue.overflow, OverflowPolicy.drop_newest)
        self.assertEqual((pipeline.subscriber.host, pipeline.subscriber.port), ("broker", 1884))
        self.assertEqual(pipeline.subscriber.topic_filter, "home/+/telemetry")
        self.assertIsInstance(pipeline.writer.policy, RetryWithBackoff)
        self.assertEqual(pipeline.sweeper.horizon.days, 30)
        self.assertEqual(pipeline.sweeper.interval, 60)


if __name__ == '__main__':
    unittest.main()
