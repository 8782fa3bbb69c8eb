"""Frame and stream source adapters over a machine's capabilities."""

from typing import Any

from .machines.base import StreamService, VisionService
from .models import CapturedFrame


class FrameSource:
    """Pulls the latest camera frame plus detections from a vision service."""

    def __init__(self, vision: VisionService, camera_name: str):
        self._vision = vision
        self.camera_name = camera_name

    async def next_frame(self) -> CapturedFrame:
        return await self._vision.capture_all_from_camera(
            self.camera_name,
            return_image=True,
            return_classifications=True,
            return_detections=True,
            return_object_point_clouds=False,
        )


class StreamSource:
    """Requests live media handles for one named source."""

    def __init__(self, streams: StreamService, source_name: str):
        self._streams = streams
        self.source_name = source_name

    async def get_media_stream(self) -> Any:
        return await self._streams.get_media_stream(self.source_name)
