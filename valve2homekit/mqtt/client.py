"""Async MQTT client wrapper."""

import asyncio
import contextlib
import logging
import random
import ssl
from typing import Optional, Any, Callable, Awaitable, List, Tuple

import aiomqtt

from ..config import MQTTConfig

logger = logging.getLogger(__name__)

# Type alias for message callback
MessageCallback = Callable[[str, bytes], Awaitable[None]]

# Type alias for connect callback
ConnectCallback = Callable[[], Awaitable[None]]


def make_client_id(name: str) -> str:
    """Build a randomized per-instance client identifier."""
    return f"{name}_{random.randint(0, 10000)}"


class MQTTClient:
    """Async MQTT client with a persistent, self-healing connection.

    Wraps aiomqtt with a fixed-interval reconnect loop, subscribe-on-connect
    and a fire-and-forget outbound queue.
    """

    def __init__(self, config: MQTTConfig, client_name: str):
        """Initialize the MQTT client.

        Args:
            config: MQTT configuration
            client_name: Device name; used for the client ID and last-will payload
        """
        self.config = config
        self.client_name = client_name
        self.client_id = make_client_id(client_name)
        self._client: Optional[aiomqtt.Client] = None
        self._connected = False
        self._subscriptions: List[str] = []
        self._outbound: asyncio.Queue[Tuple[str, str]] = asyncio.Queue()
        self._connect_callback: Optional[ConnectCallback] = None

        self._stats = {
            "connects": 0,
            "disconnects": 0,
            "published": 0,
            "publish_failed": 0,
            "received": 0,
        }

    @property
    def connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected

    @property
    def pending(self) -> int:
        """Number of outbound messages waiting to be sent."""
        return self._outbound.qsize()

    @property
    def stats(self) -> dict:
        """Get client statistics."""
        return dict(self._stats)

    def add_subscription(self, topic: str) -> None:
        """Register a topic to subscribe to on every connect.

        Args:
            topic: MQTT topic pattern
        """
        if topic not in self._subscriptions:
            self._subscriptions.append(topic)

    def set_connect_callback(self, callback: ConnectCallback) -> None:
        """Set a callback run after each successful connect and subscribe.

        Args:
            callback: Async function with no arguments
        """
        self._connect_callback = callback

    def client_options(self) -> dict:
        """Build the aiomqtt.Client keyword arguments."""
        options = {
            "hostname": self.config.host,
            "port": self.config.port,
            "username": self.config.username,
            "password": self.config.password,
            "identifier": self.client_id,
            "protocol": aiomqtt.ProtocolVersion.V311,
            "clean_session": True,
            "keepalive": self.config.keepalive,
            "timeout": self.config.connect_timeout,
            "transport": self.config.transport,
            # Last Will and Testament announcing an unclean disconnect
            "will": aiomqtt.Will(
                topic=self.config.will_topic,
                payload=self.client_name,
                qos=0,
                retain=False,
            ),
        }

        if self.config.transport == "websockets":
            options["websocket_path"] = self.config.websocket_path

        if self.config.use_tls:
            if self.config.tls_insecure:
                options["tls_params"] = aiomqtt.TLSParameters(cert_reqs=ssl.CERT_NONE)
                options["tls_insecure"] = True
            else:
                options["tls_params"] = aiomqtt.TLSParameters(cert_reqs=ssl.CERT_REQUIRED)

        return options

    def _create_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(**self.client_options())

    def publish_nowait(self, topic: str, payload: Any) -> None:
        """Queue a message for publishing and return immediately.

        Messages queued while disconnected are sent after the next connect.

        Args:
            topic: MQTT topic
            payload: Message payload
        """
        self._outbound.put_nowait((topic, self._encode(payload)))

    @staticmethod
    def _encode(payload: Any) -> str:
        """Convert a payload to the string sent on the wire."""
        if isinstance(payload, bytes):
            return payload.decode("utf-8")
        elif isinstance(payload, bool):
            return "true" if payload else "false"
        elif payload is None:
            return ""
        return str(payload)

    async def publish(self, topic: str, payload: Any, retain: bool = False) -> None:
        """Publish a message to a topic.

        Args:
            topic: MQTT topic
            payload: Message payload
            retain: Whether to retain the message

        Raises:
            ConnectionError: If not connected
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        payload_str = self._encode(payload)
        await self._client.publish(
            topic,
            payload=payload_str,
            qos=self.config.qos,
            retain=retain,
        )
        self._stats["published"] += 1
        logger.debug(f"Published to {topic}: {payload_str[:100]}")

    async def subscribe(self, topic: str) -> None:
        """Subscribe to a topic.

        Args:
            topic: MQTT topic pattern
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        await self._client.subscribe(topic, qos=self.config.qos)
        logger.debug(f"Subscribed to {topic}")

    async def _subscribe_all(self) -> None:
        """Subscribe to every registered topic, logging failures."""
        for topic in self._subscriptions:
            try:
                await self.subscribe(topic)
                logger.info(f"Subscribed to {topic}")
            except aiomqtt.MqttError as e:
                logger.error(f"Failed to subscribe: {topic} ({e})")

    async def _drain_outbound(self) -> None:
        """Send queued messages while connected."""
        while True:
            topic, payload = await self._outbound.get()
            try:
                await self.publish(topic, payload)
            except aiomqtt.MqttError as e:
                self._stats["publish_failed"] += 1
                logger.error(f"Failed to publish to {topic}: {e}")
            finally:
                self._outbound.task_done()

    async def message_loop(self, callback: MessageCallback) -> None:
        """Run a message processing loop.

        Continuously receives messages and calls the callback for each.
        Only returns when disconnected or cancelled.

        Args:
            callback: Async function called with (topic, payload) for each message
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        logger.debug("Starting MQTT message loop")

        async for message in self._client.messages:
            topic = str(message.topic)

            # Get payload as bytes
            if isinstance(message.payload, bytes):
                payload = message.payload
            else:
                payload = str(message.payload).encode()

            self._stats["received"] += 1
            logger.debug(f"Received message on {topic}: {payload[:100]}")

            try:
                await callback(topic, payload)
            except Exception as e:
                logger.error(f"Error processing message on {topic}: {e}")

    async def _session(self, callback: MessageCallback) -> None:
        """Run one connection from connect to disconnect."""
        logger.info(f"Connecting to MQTT broker at {self.config.host}:{self.config.port}")

        async with self._create_client() as client:
            self._client = client
            self._connected = True
            self._stats["connects"] += 1
            logger.info(f"Connected to MQTT broker as {self.client_id}")

            await self._subscribe_all()

            if self._connect_callback:
                await self._connect_callback()

            sender = asyncio.create_task(self._drain_outbound())
            try:
                await self.message_loop(callback)
            finally:
                sender.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sender

    async def run(self, callback: MessageCallback) -> None:
        """Keep a connection open and dispatch messages until cancelled.

        Reconnects after ``reconnect_interval`` whenever the connection
        fails or drops.

        Args:
            callback: Async function called with (topic, payload) for each message
        """
        if self.config.use_tls and self.config.tls_insecure:
            logger.warning("TLS certificate validation is DISABLED for the MQTT broker")

        while True:
            try:
                await self._session(callback)
            except aiomqtt.MqttError as e:
                logger.warning(f"MQTT connection closed: {e}")
            finally:
                if self._connected:
                    self._stats["disconnects"] += 1
                self._client = None
                self._connected = False

            logger.debug(f"Reconnecting in {self.config.reconnect_interval}s")
            await asyncio.sleep(self.config.reconnect_interval)
