"""Main application orchestrator for valve2homekit."""

import asyncio
import contextlib
import logging
import signal
from datetime import datetime
from typing import Optional, Union

from .config import AppConfig, get_config
from .bridge import ValveBridge
from .homekit import ValveAccessory, create_driver
from .mqtt import MQTTClient
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Valve2HomeKit:
    """Main application class.

    Runs the HomeKit accessory server and the MQTT connection on one
    event loop and wires both to a ValveBridge.
    """

    def __init__(self, config: Union[AppConfig, str, None] = None):
        """Initialize the application.

        Args:
            config: AppConfig instance, path to YAML config file, or None for env/defaults
        """
        if isinstance(config, AppConfig):
            self.config = config
        elif isinstance(config, str):
            self.config = get_config(config)
        else:
            self.config = get_config()

        self.running = False
        self._shutdown_event = asyncio.Event()

        self.bridge = ValveBridge(self.config.device)

        # Components (initialized in start())
        self.mqtt: Optional[MQTTClient] = None
        self.driver = None
        self.accessory: Optional[ValveAccessory] = None
        self._mqtt_task: Optional[asyncio.Task] = None
        self._start_time: Optional[datetime] = None

    async def start(self) -> None:
        """Start the application and run until shutdown is requested."""
        setup_logging(
            level=self.config.logging.level,
            log_file=self.config.logging.file,
            format_string=self.config.logging.format,
        )

        device = self.config.device
        logger.info(f"Starting valve2homekit for {device.name}")
        self._start_time = datetime.now()
        self.running = True

        self._setup_signal_handlers()

        try:
            # MQTT side
            self.mqtt = MQTTClient(self.config.mqtt, client_name=device.name)
            self.mqtt.add_subscription(device.topic_status)
            self.mqtt.set_connect_callback(self._on_mqtt_connect)
            self.bridge.set_publish_callback(self.mqtt.publish_nowait)

            # HomeKit side
            self.driver = create_driver(
                self.config.homekit,
                loop=asyncio.get_running_loop(),
            )
            self.accessory = ValveAccessory(self.driver, self.bridge)
            self.driver.add_accessory(accessory=self.accessory)

            logger.info(
                f"{device.name} plugin loaded "
                f"(status: {device.topic_status}, command: {device.topic_command})"
            )

            await self.driver.async_start()
            self._mqtt_task = asyncio.create_task(
                self.mqtt.run(self._handle_mqtt_message)
            )

            await self._shutdown_event.wait()

        except asyncio.CancelledError:
            logger.info("Application cancelled")
        except Exception as e:
            logger.error(f"Application error: {e}", exc_info=True)
            raise
        finally:
            await self.stop()

    async def _on_mqtt_connect(self) -> None:
        """Query the device state after each (re)connect, if configured."""
        self.bridge.request_status()

    async def _handle_mqtt_message(self, topic: str, payload: bytes) -> None:
        """Handle an incoming MQTT message.

        Args:
            topic: MQTT topic
            payload: Message payload
        """
        self.bridge.on_status_message(topic, payload)

    async def stop(self) -> None:
        """Stop the application gracefully."""
        if not self.running:
            return

        logger.info("Stopping valve2homekit")
        self.running = False
        self._shutdown_event.set()
        self._remove_signal_handlers()

        if self._mqtt_task:
            self._mqtt_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._mqtt_task
            self._mqtt_task = None
            logger.info("MQTT connection closed.")

        if self.driver:
            try:
                await self.driver.async_stop()
            except Exception as e:
                logger.error(f"Error stopping HomeKit driver: {e}")
            self.driver = None

        stats = self.stats
        logger.info(
            f"Statistics: commands={stats['bridge']['commands_sent']}, "
            f"status={stats['bridge']['status_messages']}, "
            f"changes={stats['bridge']['state_changes']}, "
            f"invalid={stats['bridge']['invalid_messages']}"
        )
        logger.info("valve2homekit stopped")

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig):
            logger.info(f"Received signal {sig.name}, initiating shutdown")
            self._shutdown_event.set()

        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    def _remove_signal_handlers(self) -> None:
        """Restore default signal handling."""
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)

    @property
    def stats(self) -> dict:
        """Get application statistics."""
        return {
            "uptime": (
                str(datetime.now() - self._start_time)
                if self._start_time
                else None
            ),
            "state": str(self.bridge.state),
            "bridge": self.bridge.stats,
            "mqtt": self.mqtt.stats if self.mqtt else None,
        }


async def run_app(config: Union[AppConfig, str, None] = None) -> None:
    """Run the application.

    Args:
        config: AppConfig instance, path to config file, or None for env/defaults
    """
    app = Valve2HomeKit(config)
    await app.start()
