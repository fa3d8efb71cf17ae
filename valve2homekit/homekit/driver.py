"""HAP-python accessory driver setup."""

import asyncio
import logging
from typing import Optional

from pyhap.accessory_driver import AccessoryDriver

from ..config import HomeKitConfig

logger = logging.getLogger(__name__)


def create_driver(
    config: HomeKitConfig,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> AccessoryDriver:
    """Create the HAP accessory driver.

    Args:
        config: HomeKit configuration
        loop: Event loop to run on (the MQTT client shares it)

    Returns:
        AccessoryDriver ready for ``add_accessory``
    """
    driver_kwargs = {
        "port": config.port,
        "persist_file": str(config.persist_file),
        "pincode": config.pincode.encode("utf-8"),
        "loop": loop,
    }

    if config.address:
        driver_kwargs["address"] = config.address

    logger.info(
        f"HomeKit HAP server on {config.address or '0.0.0.0'}:{config.port} "
        f"(state file: {config.persist_file})"
    )
    return AccessoryDriver(**driver_kwargs)
