"""Mock machine: synthetic camera scene, canned detections, recording arm."""

import asyncio
import logging

import cv2
import numpy as np
from aiortc import VideoStreamTrack
from av import VideoFrame

from ..models import BoxConvention, CapturedFrame, ConnectionState, Detection
from .base import Machine

logger = logging.getLogger("overlay.machines.mock")


class SyntheticScene:
    """A cube sliding across a dark grid. Advances one step per capture."""

    def __init__(self, width: int = 640, height: int = 480, cube_size: int = 80, step: int = 8):
        self.width = width
        self.height = height
        self.cube_size = cube_size
        self.step = step
        self.tick = 0

    def advance(self) -> None:
        self.tick += 1

    def cube_box(self) -> tuple[int, int, int, int]:
        """Pixel box (x1, y1, x2, y2) of the cube at the current tick."""
        travel = max(1, self.width - self.cube_size)
        x1 = (self.tick * self.step) % travel
        y1 = (self.height - self.cube_size) // 2
        return x1, y1, x1 + self.cube_size, y1 + self.cube_size

    def render(self) -> np.ndarray:
        img = np.full((self.height, self.width, 3), 40, dtype=np.uint8)
        for x in range(0, self.width, 40):
            cv2.line(img, (x, 0), (x, self.height - 1), (60, 60, 60), 1)
        for y in range(0, self.height, 40):
            cv2.line(img, (0, y), (self.width - 1, y), (60, 60, 60), 1)
        x1, y1, x2, y2 = self.cube_box()
        cv2.rectangle(img, (x1, y1), (x2, y2), (0, 140, 255), -1)
        return img

    def detections(self) -> list[Detection]:
        """The cube, in normalized coordinates."""
        x1, y1, x2, y2 = self.cube_box()
        return [
            Detection(
                class_name="cube",
                confidence=0.92,
                x_min=x1 / self.width,
                y_min=y1 / self.height,
                x_max=x2 / self.width,
                y_max=y2 / self.height,
            )
        ]


class MockVision:
    """Vision service over the synthetic scene (normalized boxes)."""

    def __init__(self, scene: SyntheticScene, jpeg_quality: int = 85):
        self._scene = scene
        self._jpeg_quality = jpeg_quality
        self.calls = 0

    async def capture_all_from_camera(
        self,
        camera_name: str,
        *,
        return_image: bool = True,
        return_classifications: bool = False,
        return_detections: bool = True,
        return_object_point_clouds: bool = False,
    ) -> CapturedFrame:
        self.calls += 1
        self._scene.advance()
        image = None
        if return_image:
            _, jpg = cv2.imencode(
                ".jpg", self._scene.render(), [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality]
            )
            image = jpg.tobytes()
        detections = self._scene.detections() if return_detections else []
        return CapturedFrame(
            image=image, detections=detections, convention=BoxConvention.NORMALIZED
        )


class SceneVideoTrack(VideoStreamTrack):
    """Emits the synthetic scene as live video."""

    kind = "video"

    def __init__(self, scene: SyntheticScene):
        super().__init__()
        self._scene = scene

    async def recv(self) -> VideoFrame:
        pts, time_base = await self.next_timestamp()
        self._scene.advance()
        frame = VideoFrame.from_ndarray(self._scene.render(), format="bgr24")
        frame.pts = pts
        frame.time_base = time_base
        return frame


class MockStreams:
    """One live track per source name, replaced once it has ended."""

    def __init__(self, scene: SyntheticScene):
        self._scene = scene
        self._tracks: dict[str, SceneVideoTrack] = {}

    async def get_media_stream(self, source_name: str) -> SceneVideoTrack:
        track = self._tracks.get(source_name)
        if track is None or track.readyState == "ended":
            track = SceneVideoTrack(self._scene)
            self._tracks[source_name] = track
        return track

    def close(self) -> None:
        for track in self._tracks.values():
            track.stop()
        self._tracks.clear()


class MockArm:
    """Records every command it receives."""

    def __init__(self, name: str):
        self.name = name
        self.commands: list[tuple] = []

    async def stop(self) -> None:
        self.commands.append(("stop",))
        logger.info(f"[{self.name}] stop")

    async def move_to_joint_positions(self, positions: list[float]) -> None:
        self.commands.append(("move_to_joint_positions", list(positions)))
        logger.info(f"[{self.name}] move to joints {positions}")
        await asyncio.sleep(0)

    async def do_command(self, command: dict) -> dict:
        self.commands.append(("do_command", dict(command)))
        logger.info(f"[{self.name}] do_command {command}")
        return {"ok": True}


class MockMachine(Machine):
    """Machine with no hardware behind it."""

    def __init__(self, name: str = "mock", width: int = 640, height: int = 480):
        super().__init__(name)
        self.scene = SyntheticScene(width, height)
        self._vision = MockVision(self.scene)
        self._streams = MockStreams(self.scene)
        self._actuators: dict[str, MockArm] = {}

    async def connect(self) -> None:
        await self._emit(ConnectionState.CONNECTING)
        logger.info("Running in mock machine mode")
        await self._emit(ConnectionState.CONNECTED)

    async def close(self) -> None:
        await self._emit(ConnectionState.DISCONNECTING)
        self._streams.close()
        await self._emit(ConnectionState.DISCONNECTED)

    async def simulate(self, state: ConnectionState) -> None:
        """Report a connection event as if the transport had produced it."""
        await self._emit(state)

    def vision(self, name: str) -> MockVision:
        return self._vision

    def streams(self) -> MockStreams:
        return self._streams

    def actuator(self, name: str) -> MockArm:
        if name not in self._actuators:
            self._actuators[name] = MockArm(name)
        return self._actuators[name]
