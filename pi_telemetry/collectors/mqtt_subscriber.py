"""
MQTT subscriber for telemetry ingestion
Keeps one broker connection alive for the life of the process and feeds
decoded records into the ingest queue
"""

import asyncio
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

import aiomqtt
import structlog

from pi_telemetry.collectors.decoder import DecodeError, decode_message
from pi_telemetry.pipeline.ingest_queue import IngestQueue

logger = structlog.get_logger(__name__)


class SubscriberState(str, Enum):
    disconnected = "disconnected"
    connecting = "connecting"
    subscribed = "subscribed"


def parse_broker_url(url: str) -> tuple:
    """Split ``mqtt://[user:pass@]host[:port]`` into (host, port, username, password)"""
    parsed = urlparse(url if "://" in url else f"mqtt://{url}")
    default_port = 8883 if parsed.scheme in ("mqtts", "ssl") else 1883
    return parsed.hostname or "localhost", parsed.port or default_port, parsed.username, parsed.password


class MqttSubscriber:
    """Subscribes to the telemetry topic filter and reconnects forever.

    Every transport failure (connect, subscribe, or the message stream ending)
    puts the subscriber back to ``disconnected``; it then waits a fixed
    ``reconnect_delay`` and connects again. There is no backoff and no retry
    limit. Delivery is QoS 0, so messages in flight during an outage are lost.
    """

    def __init__(
        self,
        queue: IngestQueue,
        broker_url: str = "mqtt://localhost:1883",
        topic_filter: str = "sensors/+/telemetry",
        client_id: str = "pi-telemetry",
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 30,
        reconnect_delay: float = 5.0,
        client_factory: Optional[Callable[[], aiomqtt.Client]] = None,
    ):
        self.queue = queue
        self.topic_filter = topic_filter
        self.reconnect_delay = reconnect_delay
        self.host, self.port, url_user, url_password = parse_broker_url(broker_url)
        self.client_id = client_id
        self.username = username or url_user
        self.password = password or url_password
        self.keepalive = keepalive
        self._client_factory = client_factory or self._default_client

        self.state = SubscriberState.disconnected
        self.running = False
        self.received = 0
        self.dropped = 0
        self.reconnects = 0
        self._task: Optional[asyncio.Task] = None

    def _default_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            identifier=self.client_id,
            keepalive=self.keepalive,
            clean_session=True,
        )

    def start(self) -> asyncio.Task:
        """Start the subscriber loop as a background task"""
        self.running = True
        self._task = asyncio.create_task(self.run(), name="mqtt-subscriber")
        return self._task

    async def stop(self):
        """Cancel the subscriber loop"""
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = SubscriberState.disconnected
        logger.info("MQTT subscriber stopped")

    async def run(self):
        """Connect, subscribe, consume; on any failure wait and start over"""
        while True:
            self.state = SubscriberState.connecting
            logger.info("Connecting to MQTT broker", host=self.host, port=self.port)
            try:
                async with self._client_factory() as client:
                    await client.subscribe(self.topic_filter, qos=0)
                    self.state = SubscriberState.subscribed
                    logger.info("Subscribed to topic", topic=self.topic_filter)

                    async for message in client.messages:
                        self.handle_message(str(message.topic), message.payload)

                logger.warning("MQTT message stream ended")
            except aiomqtt.MqttError as e:
                logger.error("MQTT connection error", error=str(e))
            except Exception as e:
                logger.error("Unexpected MQTT client error", error=str(e), exc_info=True)

            self.state = SubscriberState.disconnected
            self.reconnects += 1
            logger.warning("Retrying MQTT connection", retry_in=self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

    def handle_message(self, topic: str, payload) -> bool:
        """Decode one publish and enqueue it; returns False when the message is dropped"""
        self.received += 1
        logger.debug("Received MQTT message", topic=topic)

        if payload is None:
            payload = b""
        elif isinstance(payload, (int, float)):
            payload = str(payload)

        try:
            message = decode_message(topic, payload)
        except DecodeError as e:
            self.dropped += 1
            logger.warning("Failed to parse MQTT payload", topic=topic, error=str(e))
            return False

        return self.queue.push(message)
