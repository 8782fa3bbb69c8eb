"""Local machine: a camera attached to this host, no arm."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np
from aiortc import VideoStreamTrack
from av import VideoFrame

from ..models import BoxConvention, CapturedFrame, ConnectionState
from .base import Machine

logger = logging.getLogger("overlay.machines.local")

# Single-thread executor so capture calls never overlap on the device
_camera_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera")


class WebcamCamera:
    """Blocking OpenCV capture wrapper. Call from the camera executor."""

    def __init__(self, device: int | str = 0, width: int = 640, height: int = 480, fps: int = 30):
        self.device = device
        self.width = width
        self.height = height
        self.fps = fps
        self._cap: cv2.VideoCapture | None = None

    def open(self) -> bool:
        cap = cv2.VideoCapture(self.device)
        if not cap.isOpened():
            logger.error(f"Could not open camera device {self.device}")
            return False
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(self.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(self.height))
        cap.set(cv2.CAP_PROP_FPS, float(self.fps))
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap
        logger.info(
            f"Camera opened: device={self.device} "
            f"resolution={int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
        )
        return True

    def read(self) -> np.ndarray | None:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        return frame if ok else None

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released")


async def _read_frame(camera: WebcamCamera) -> np.ndarray | None:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_camera_executor, camera.read)


class LocalVision:
    """Camera frames only; no detections are produced on this host."""

    def __init__(self, camera: WebcamCamera, jpeg_quality: int = 85):
        self._camera = camera
        self._jpeg_quality = jpeg_quality

    async def capture_all_from_camera(
        self,
        camera_name: str,
        *,
        return_image: bool = True,
        return_classifications: bool = False,
        return_detections: bool = True,
        return_object_point_clouds: bool = False,
    ) -> CapturedFrame:
        frame = await _read_frame(self._camera)
        if frame is None:
            raise RuntimeError(f"Camera '{camera_name}' returned no frame")
        image = None
        if return_image:
            _, jpg = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality])
            image = jpg.tobytes()
        return CapturedFrame(image=image, detections=[], convention=BoxConvention.ABSOLUTE)


class CameraVideoTrack(VideoStreamTrack):
    """Reads the camera, emits as WebRTC-style video."""

    kind = "video"

    def __init__(self, camera: WebcamCamera):
        super().__init__()
        self._camera = camera

    async def recv(self) -> VideoFrame:
        pts, time_base = await self.next_timestamp()

        bgr = await _read_frame(self._camera)
        if bgr is None:
            # No frame yet, send black
            bgr = np.zeros((self._camera.height, self._camera.width, 3), dtype=np.uint8)
        frame = VideoFrame.from_ndarray(bgr, format="bgr24")
        frame.pts = pts
        frame.time_base = time_base
        return frame


class LocalStreams:
    def __init__(self, camera: WebcamCamera):
        self._camera = camera
        self._track: CameraVideoTrack | None = None

    async def get_media_stream(self, source_name: str) -> CameraVideoTrack:
        if self._track is None or self._track.readyState == "ended":
            self._track = CameraVideoTrack(self._camera)
        return self._track

    def close(self) -> None:
        if self._track is not None:
            self._track.stop()
            self._track = None


class LoggingActuator:
    """Stand-in for an arm on a host that has none: logs and returns."""

    def __init__(self, name: str):
        self.name = name

    async def stop(self) -> None:
        logger.warning(f"No actuator '{self.name}' on this host; ignoring stop")

    async def move_to_joint_positions(self, positions: list[float]) -> None:
        logger.warning(f"No actuator '{self.name}' on this host; ignoring move to {positions}")

    async def do_command(self, command: dict) -> dict:
        logger.warning(f"No actuator '{self.name}' on this host; ignoring {command}")
        return {}


class LocalMachine(Machine):
    def __init__(
        self,
        name: str = "local",
        device: int | str = 0,
        width: int = 640,
        height: int = 480,
        fps: int = 30,
        jpeg_quality: int = 85,
    ):
        super().__init__(name)
        self.camera = WebcamCamera(device, width, height, fps)
        self._vision = LocalVision(self.camera, jpeg_quality)
        self._streams = LocalStreams(self.camera)

    async def connect(self) -> None:
        await self._emit(ConnectionState.CONNECTING)
        loop = asyncio.get_running_loop()
        opened = await loop.run_in_executor(_camera_executor, self.camera.open)
        if not opened:
            await self._emit(ConnectionState.DISCONNECTED)
            raise RuntimeError(f"Camera device {self.camera.device} unavailable")
        await self._emit(ConnectionState.CONNECTED)

    async def close(self) -> None:
        await self._emit(ConnectionState.DISCONNECTING)
        self._streams.close()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(_camera_executor, self.camera.release)
        await self._emit(ConnectionState.DISCONNECTED)

    def vision(self, name: str) -> LocalVision:
        return self._vision

    def streams(self) -> LocalStreams:
        return self._streams

    def actuator(self, name: str) -> LoggingActuator:
        return LoggingActuator(name)
