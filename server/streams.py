"""WebRTC video track over the overlay surface using aiortc."""

import logging

import numpy as np
from aiortc import VideoStreamTrack
from aiortc.contrib.media import MediaRelay
from av import VideoFrame

from overlay.renderer import OverlayRenderer

logger = logging.getLogger("server.streams")

# Singleton relay for fanning out tracks to multiple peer connections
_relay: MediaRelay | None = None


def get_relay() -> MediaRelay:
    global _relay
    if _relay is None:
        _relay = MediaRelay()
    return _relay


class SurfaceVideoTrack(VideoStreamTrack):
    """Emits the renderer's current surface as WebRTC video."""

    kind = "video"

    def __init__(self, renderer: OverlayRenderer, width: int = 640, height: int = 480):
        super().__init__()
        self._renderer = renderer
        self._blank = np.zeros((height, width, 3), dtype=np.uint8)

    async def recv(self) -> VideoFrame:
        pts, time_base = await self.next_timestamp()

        pixels = self._renderer.snapshot()
        if pixels is None or pixels.size == 0:
            # Nothing drawn yet, send black
            pixels = self._blank
        frame = VideoFrame.from_ndarray(pixels, format="bgr24")
        frame.pts = pts
        frame.time_base = time_base
        return frame
