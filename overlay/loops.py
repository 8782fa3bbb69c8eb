"""Acquisition loops: poll-and-snapshot and continuous stream."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from .models import CapturedFrame
from .renderer import OverlayRenderer
from .sources import FrameSource, StreamSource

logger = logging.getLogger("overlay.loops")

DEFAULT_POLL_INTERVAL_MS = 200
DEFAULT_STREAM_TICK_MS = 33


class LoopHandle:
    """Cancelable identity of one running loop.

    Holds the running flag, the pending scheduled tick (stream loops) and the
    task driving the loop.
    """

    def __init__(self, name: str):
        self.name = name
        self._running = True
        self.pending: asyncio.Handle | None = None
        self.task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    def is_canceled(self) -> bool:
        return not self._running

    def cancel(self) -> None:
        """Clear the running flag and drop any pending tick. Idempotent."""
        self._running = False
        if self.pending is not None:
            self.pending.cancel()
            self.pending = None

    def __repr__(self) -> str:
        return f"LoopHandle({self.name!r}, running={self._running})"


async def run_poll_loop(
    frame_source: FrameSource,
    on_frame: Callable[[CapturedFrame], Awaitable[Any] | Any],
    interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
    is_canceled: Callable[[], bool] = lambda: False,
    acquire_timeout_s: float | None = None,
) -> int:
    """Repeatedly capture a frame, hand it to ``on_frame``, then sleep.

    A failed cycle is logged and never ends the loop. Cancellation is checked
    only at the top of each iteration, so a cancel lands after the in-flight
    capture, render and sleep. ``acquire_timeout_s`` bounds each capture call
    (None waits forever). Returns the number of iterations run.
    """
    iterations = 0
    while not is_canceled():
        iterations += 1
        try:
            if acquire_timeout_s is None:
                frame = await frame_source.next_frame()
            else:
                frame = await asyncio.wait_for(frame_source.next_frame(), acquire_timeout_s)
            result = on_frame(frame)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.error(f"Vision capture timed out after {acquire_timeout_s}s")
        except Exception as e:
            logger.error(f"Vision stream error: {e}")

        # Throttle, not a scheduler: no compensation for slow iterations
        await asyncio.sleep(interval_ms / 1000)

    logger.info(f"Poll loop stopped after {iterations} iterations")
    return iterations


class VideoSink:
    """Video output bound to the renderer's stream-mode surface."""

    def __init__(self, renderer: OverlayRenderer):
        self._renderer = renderer
        self.attached: Any = None
        self.frames_played = 0

    def attach(self, track: Any) -> None:
        logger.info(f"Attaching media track {getattr(track, 'id', track)!r}")
        self.attached = track

    def detach(self) -> None:
        self.attached = None

    async def play(self, handle: LoopHandle | None = None) -> None:
        """Pull the next frame from the attached track and draw it.

        A frame that arrives after ``handle`` was canceled is dropped.
        """
        if self.attached is None:
            raise RuntimeError("No media track attached")
        frame = await self.attached.recv()
        if handle is not None and handle.is_canceled():
            logger.debug("Dropping frame from canceled stream loop")
            return
        self._renderer.render_image(frame.to_ndarray(format="bgr24"))
        self.frames_played += 1


class StreamLoop:
    """Continuous-video loop driven by scheduled ticks.

    Every tick re-requests the media handle. Any acquisition or playback
    error stops the loop; a broken handle needs a fresh negotiation.
    """

    def __init__(self, tick_interval_ms: float = DEFAULT_STREAM_TICK_MS):
        self._tick_interval_s = tick_interval_ms / 1000

    def start(self, stream_source: StreamSource, sink: VideoSink) -> LoopHandle:
        handle = LoopHandle("stream")
        loop = asyncio.get_running_loop()
        handle.pending = loop.call_soon(self._schedule_tick, handle, stream_source, sink)
        logger.info(f"Stream loop started for '{stream_source.source_name}'")
        return handle

    def stop(self, handle: LoopHandle | None) -> None:
        if handle is None:
            return
        handle.cancel()
        logger.info("Stream loop stopped")

    def _schedule_tick(self, handle: LoopHandle, source: StreamSource, sink: VideoSink) -> None:
        handle.pending = None
        if handle.running:
            handle.task = asyncio.ensure_future(self._tick(handle, source, sink))

    async def _tick(self, handle: LoopHandle, source: StreamSource, sink: VideoSink) -> None:
        try:
            media = await source.get_media_stream()
            if sink.attached is not media:
                sink.attach(media)
            await sink.play(handle)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Stream error, stopping stream loop: {e}")
            self.stop(handle)
            return

        if handle.running:
            handle.pending = asyncio.get_running_loop().call_later(
                self._tick_interval_s, self._schedule_tick, handle, source, sink
            )
