"""Build and connect a machine handle for resolved credentials."""

import logging

from ..bootstrap import Credentials
from .base import Machine

logger = logging.getLogger("overlay.machines.factory")

BACKENDS = ("mock", "local")


async def connect_machine(
    credentials: Credentials,
    backend: str = "mock",
    camera_device: int | str = 0,
    width: int = 640,
    height: int = 480,
    jpeg_quality: int = 85,
) -> Machine:
    """Create the backend named by ``backend`` and open its connection.

    Neither backend talks to a remote robot, so only ``credentials.host`` is
    used (as the machine name). The API key is resolved and validated at
    startup but no transport consumes it.
    """
    if backend == "mock":
        from .mock import MockMachine

        machine: Machine = MockMachine(name=credentials.host, width=width, height=height)
    elif backend == "local":
        from .local import LocalMachine

        machine = LocalMachine(
            name=credentials.host,
            device=camera_device,
            width=width,
            height=height,
            jpeg_quality=jpeg_quality,
        )
    else:
        raise ValueError(f"Unknown machine backend '{backend}' (expected one of {BACKENDS})")

    logger.info(f"Connecting to {credentials.host} ({backend})...")
    await machine.connect()
    return machine
