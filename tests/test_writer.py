import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from pi_telemetry.pipeline.ingest_queue import IngestQueue
from pi_telemetry.pipeline.writer import (
    DropOnFailure,
    PersistenceWriter,
    RetryWithBackoff,
    build_policy,
)
from pi_telemetry.schemas.telemetry import TelemetryMessage


def message(n):
    return TelemetryMessage(
        device_id=f"dev-{n}",
        temperature_c=20.0 + n,
        humidity_pct=50.0,
        timestamp=datetime(2024, 1, 1, 0, n, tzinfo=timezone.utc),
    )


def db_down():
    return OperationalError("INSERT INTO readings", {}, Exception("connection refused"))


class TestPersistenceWriter(unittest.IsolatedAsyncioTestCase):
    """Test cases for the persistence writer"""

    def setUp(self):
        self.store = MagicMock()
        self.queue = IngestQueue()

    async def test_writes_in_queue_order(self):
        for n in range(4):
            self.queue.push(message(n))
        self.queue.close()

        writer = PersistenceWriter(self.queue, self.store)
        await writer.run()

        written = [call.args[0].device_id for call in self.store.insert_reading.call_args_list]
        self.assertEqual(written, ["dev-0", "dev-1", "dev-2", "dev-3"])
        self.assertEqual(writer.written, 4)
        self.assertEqual(writer.failed, 0)

    async def test_failed_insert_is_dropped_and_writer_continues(self):
        self.store.insert_reading.side_effect = [db_down(), None, None]
        for n in range(3):
            self.queue.push(message(n))
        self.queue.close()

        writer = PersistenceWriter(self.queue, self.store, policy=DropOnFailure())
        await writer.run()

        self.assertEqual(self.store.insert_reading.call_count, 3)
        self.assertEqual(writer.written, 2)
        self.assertEqual(writer.failed, 1)

    async def test_retry_policy_recovers(self):
        self.store.insert_reading.side_effect = [db_down(), db_down(), None]
        self.queue.push(message(1))
        self.queue.close()

        writer = PersistenceWriter(self.queue, self.store, policy=RetryWithBackoff(attempts=3, delay=0))
        await writer.run()

        self.assertEqual(self.store.insert_reading.call_count, 3)
        self.assertEqual(writer.written, 1)

    async def test_retry_policy_gives_up(self):
        self.store.insert_reading.side_effect = db_down()
        self.queue.push(message(1))
        self.queue.push(message(2))
        self.queue.close()

        writer = PersistenceWriter(self.queue, self.store, policy=RetryWithBackoff(attempts=2, delay=0))
        await writer.run()

        self.assertEqual(self.store.insert_reading.call_count, 4)
        self.assertEqual(writer.failed, 2)

    async def test_run_ends_with_empty_closed_queue(self):
        self.queue.close()
        writer = PersistenceWriter(self.queue, self.store)
        await writer.run()
        self.store.insert_reading.assert_not_called()


class TestBuildPolicy(unittest.TestCase):

    def test_zero_retries_drops(self):
        self.assertIsInstance(build_policy(0), DropOnFailure)

    def test_retries_add_to_first_attempt(self):
        policy = build_policy(2, retry_delay=0.1)
        self.assertIsInstance(policy, RetryWithBackoff)
        self.assertEqual(policy.attempts, 3)
        self.assertEqual(policy.delay, 0.1)

    def test_invalid_attempts(self):
        with self.assertRaises(ValueError):
            RetryWithBackoff(attempts=0)


if __name__ == '__main__':
    unittest.main()
