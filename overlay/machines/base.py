"""Machine handle abstraction: vision, streaming and actuator capabilities."""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Protocol

from ..models import CapturedFrame, ConnectionState

logger = logging.getLogger("overlay.machines")

ConnectionListener = Callable[[dict], Awaitable[None] | None]


class VisionService(Protocol):
    async def capture_all_from_camera(
        self,
        camera_name: str,
        *,
        return_image: bool = True,
        return_classifications: bool = False,
        return_detections: bool = True,
        return_object_point_clouds: bool = False,
    ) -> CapturedFrame: ...


class StreamService(Protocol):
    async def get_media_stream(self, source_name: str) -> Any:
        """Return a live media track (``aiortc.MediaStreamTrack``-like)."""
        ...


class Actuator(Protocol):
    """Arm or service that accepts stop/move/command requests."""

    async def stop(self) -> None: ...

    async def move_to_joint_positions(self, positions: list[float]) -> None: ...

    async def do_command(self, command: dict) -> dict: ...


class Machine(ABC):
    """A live connection to one robot.

    Subclasses expose the robot's capabilities; this base class owns the
    connection-state listeners. Listeners receive ``{"eventType": <state>}``.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[ConnectionListener] = []
        self._state = ConnectionState.DISCONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    def on_connection_state_change(self, listener: ConnectionListener) -> None:
        self._listeners.append(listener)

    async def _emit(self, state: ConnectionState) -> None:
        self._state = state
        event = {"eventType": state.value}
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Connection listener error on {state.value}: {e}")

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection. Returns once connected."""
        ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    def vision(self, name: str) -> VisionService: ...

    @abstractmethod
    def streams(self) -> StreamService: ...

    @abstractmethod
    def actuator(self, name: str) -> Actuator: ...
