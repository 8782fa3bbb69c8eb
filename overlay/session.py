"""Inspection session: serializes start/stop/reset against the active loops."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable

from .loops import LoopHandle, StreamLoop, VideoSink, run_poll_loop
from .machines.base import Actuator, Machine
from .models import CapturedFrame, ConnectionState
from .ports import UIPort
from .renderer import OverlayRenderer, RenderMode
from .sources import FrameSource, StreamSource

logger = logging.getLogger("overlay.session")


@dataclass
class ViewState:
    """Everything that used to live in process-wide flags."""

    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    poll_handle: LoopHandle | None = None
    stream_handle: LoopHandle | None = None
    mode: RenderMode | None = None

    @property
    def polling(self) -> bool:
        return self.poll_handle is not None and self.poll_handle.running

    @property
    def streaming(self) -> bool:
        return self.stream_handle is not None and self.stream_handle.running


@dataclass
class SessionConfig:
    camera_name: str = "overhead-cam"
    vision_service: str = "block-detection-service"
    arm_name: str = "dofbot-arm"
    command_service: str | None = None
    stream_source: str = "overhead-cam"
    container: str = "detectionsView"
    poll_interval_ms: float = 200
    acquire_timeout_s: float | None = None
    stream_tick_ms: float = 33
    stream_size: tuple[int, int] = (640, 480)
    start_joint_positions: list[float] = field(default_factory=lambda: [0, 0, 0, 90, 0])
    reset_joint_positions: list[float] = field(default_factory=lambda: [0, 25, 0, 90, 0])


class InspectionSession:
    """Single coordinator for the user controls.

    Every control request runs under one lock, and starting any loop first
    cancels the current ones, so at most one poll loop and one stream loop
    are ever live and only one of them drives the surface.
    """

    def __init__(
        self,
        machine: Machine,
        ui: UIPort,
        config: SessionConfig | None = None,
        view: ViewState | None = None,
    ):
        self.config = config or SessionConfig()
        self.view = view or ViewState()
        self.renderer = OverlayRenderer(ui)
        self._machine = machine
        self._ui = ui
        self._lock = asyncio.Lock()
        self._stream_loop = StreamLoop(self.config.stream_tick_ms)
        self._sink = VideoSink(self.renderer)
        self._arm: Actuator = machine.actuator(self.config.arm_name)
        self._commands: Actuator | None = (
            machine.actuator(self.config.command_service)
            if self.config.command_service
            else None
        )

    @property
    def sink(self) -> VideoSink:
        return self._sink

    async def start(self) -> LoopHandle:
        """Mount a fresh surface, position the arm and start polling."""
        async with self._lock:
            self._cancel_loops()
            self.renderer.init_surface(self.config.container, RenderMode.POLL)
            self.view.mode = RenderMode.POLL

            await self._actuate(
                "move_to_joint_positions",
                self._arm.move_to_joint_positions(self.config.start_joint_positions),
            )
            if self._commands is not None:
                await self._actuate("do_command", self._commands.do_command({"command": "start"}))

            source = FrameSource(
                self._machine.vision(self.config.vision_service), self.config.camera_name
            )
            handle = LoopHandle("poll")
            self.view.poll_handle = handle
            handle.task = asyncio.create_task(
                run_poll_loop(
                    source,
                    lambda frame: self._render_for(handle, frame),
                    interval_ms=self.config.poll_interval_ms,
                    is_canceled=handle.is_canceled,
                    acquire_timeout_s=self.config.acquire_timeout_s,
                )
            )
            logger.info(f"Polling '{self.config.camera_name}' every {self.config.poll_interval_ms}ms")
            return handle

    async def stop(self) -> None:
        async with self._lock:
            self._cancel_poll()
            await self._actuate("stop", self._arm.stop())

    async def reset(self) -> None:
        async with self._lock:
            self._cancel_poll()
            await self._actuate(
                "move_to_joint_positions",
                self._arm.move_to_joint_positions(self.config.reset_joint_positions),
            )
            if self._commands is not None:
                await self._actuate("do_command", self._commands.do_command({"command": "reset"}))

    async def start_stream(self) -> LoopHandle:
        """Switch the surface to continuous video from the stream source."""
        async with self._lock:
            self._cancel_loops()
            self.renderer.init_surface(
                self.config.container, RenderMode.STREAM, size=self.config.stream_size
            )
            self.view.mode = RenderMode.STREAM
            self._sink.detach()
            source = StreamSource(self._machine.streams(), self.config.stream_source)
            handle = self._stream_loop.start(source, self._sink)
            self.view.stream_handle = handle
            return handle

    async def stop_stream(self) -> None:
        async with self._lock:
            self._cancel_stream()

    async def close(self) -> None:
        """Teardown: cancel both loops and wait for their tasks to finish."""
        async with self._lock:
            tasks = [
                h.task
                for h in (self.view.poll_handle, self.view.stream_handle)
                if h is not None and h.task is not None
            ]
            self._cancel_loops()
        for task in tasks:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def status(self) -> dict:
        surface = self.renderer.surface
        return {
            "connection": self.view.connection_state.value,
            "mode": self.view.mode.value if self.view.mode else None,
            "polling": self.view.polling,
            "streaming": self.view.streaming,
            "surface": (
                {"width": surface.width, "height": surface.height} if surface else None
            ),
            "overlays": [box.to_dict() for box in self.renderer.last_overlays],
        }

    def _render_for(self, handle: LoopHandle, frame: CapturedFrame) -> None:
        # A superseded loop may still finish its in-flight capture
        if handle.is_canceled():
            logger.debug("Dropping frame from canceled poll loop")
            return
        self.renderer.render_frame(frame, self._ui)

    def _cancel_poll(self) -> None:
        if self.view.poll_handle is not None:
            self.view.poll_handle.cancel()

    def _cancel_stream(self) -> None:
        if self.view.stream_handle is not None and self.view.stream_handle.running:
            self._stream_loop.stop(self.view.stream_handle)
            self._sink.detach()

    def _cancel_loops(self) -> None:
        self._cancel_poll()
        self._cancel_stream()

    async def _actuate(self, action: str, call: Awaitable) -> None:
        try:
            await call
        except Exception as e:
            logger.error(f"Actuator {action} failed: {e}")
