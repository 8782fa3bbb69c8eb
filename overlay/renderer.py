"""Overlay renderer: owns the draw surface and paints frames plus detections."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import cv2
import numpy as np

from .mapping import (
    DrawGeometry,
    Extent,
    PixelRect,
    aspect_fill,
    identity_geometry,
    label_text,
    map_box,
)
from .models import BoxConvention, CapturedFrame, Detection
from .ports import ReadoutSink, UIPort

logger = logging.getLogger("overlay.renderer")

# Accent #00ef83 in BGR
BOX_COLOR = (131, 239, 0)
TEXT_COLOR = (0, 0, 0)
BOX_THICKNESS = 2
LABEL_HEIGHT = 20
LABEL_PADDING = 8
FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_SCALE = 0.5
FONT_THICKNESS = 1


class RenderMode(str, Enum):
    POLL = "poll"  # surface follows each frame's native size
    STREAM = "stream"  # fixed surface, content aspect-filled


class Surface:
    """The single BGR canvas of a session."""

    def __init__(self, container: str, mode: RenderMode, width: int = 0, height: int = 0):
        self.container = container
        self.mode = mode
        self.pixels = np.zeros((height, width, 3), dtype=np.uint8)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def extent(self) -> Extent:
        return Extent(self.width, self.height)

    def resize(self, width: int, height: int) -> None:
        if (width, height) != (self.width, self.height):
            self.pixels = np.zeros((height, width, 3), dtype=np.uint8)

    def clear(self) -> None:
        self.pixels[:] = 0


@dataclass
class OverlayBox:
    """What was drawn for one detection."""

    detection: Detection
    rect: PixelRect
    label: str
    anchor: tuple[int, int]  # label text origin
    chip: tuple[int, int, int, int]  # x1, y1, x2, y2

    def to_dict(self) -> dict:
        x1, y1, x2, y2 = self.rect.as_int()
        return {
            "label": self.label,
            "rect": {"x1": x1, "y1": y1, "x2": x2, "y2": y2},
            "anchor": {"x": self.anchor[0], "y": self.anchor[1]},
        }


def decode_image(data: bytes) -> np.ndarray | None:
    """Decode an encoded image payload to BGR. None if undecodable."""
    buf = np.frombuffer(data, dtype=np.uint8)
    if buf.size == 0:
        return None
    try:
        return cv2.imdecode(buf, cv2.IMREAD_COLOR)
    except cv2.error as e:
        logger.error(f"Image decode error: {e}")
        return None


def _as_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


class OverlayRenderer:
    """Clears and redraws the session surface once per frame.

    All drawing goes through this class; callers never touch the surface
    pixels directly. Calls must be serialized by the caller.
    """

    def __init__(self, ui: UIPort):
        self._ui = ui
        self._surface: Surface | None = None
        self.last_overlays: list[OverlayBox] = []

    @property
    def surface(self) -> Surface | None:
        return self._surface

    def init_surface(
        self,
        container: str,
        mode: RenderMode = RenderMode.POLL,
        size: tuple[int, int] | None = None,
    ) -> Surface | None:
        """Drop any previous surface and mount a fresh one in ``container``.

        Poll-mode surfaces start at 0x0 and take each frame's size. Stream
        mode needs ``size`` (width, height), which stays fixed.
        """
        if self._surface is not None:
            logger.debug(f"Tearing down surface in '{self._surface.container}'")
        self._surface = None
        self.last_overlays = []

        if not self._ui.mount_surface(container):
            logger.error(f"Detections container '{container}' not found!")
            return None

        width, height = size or (0, 0)
        self._surface = Surface(container, mode, width, height)
        logger.info(f"Surface mounted in '{container}' ({mode.value}, {width}x{height})")
        return self._surface

    def render_frame(
        self, frame: CapturedFrame, readout: ReadoutSink | None = None
    ) -> list[OverlayBox] | None:
        """Draw one captured frame. Returns the drawn boxes, None if skipped."""
        if self._surface is None:
            logger.error("Detections surface is not initialized.")
            return None
        if frame.image is None:
            return None

        image = decode_image(frame.image)
        if image is None:
            logger.error(f"Could not decode {frame.mime_type} payload ({len(frame.image)} bytes)")
            return None

        return self.render_image(image, frame.detections, frame.convention, readout)

    def render_image(
        self,
        image: np.ndarray,
        detections: Sequence[Detection] = (),
        convention: BoxConvention = BoxConvention.ABSOLUTE,
        readout: ReadoutSink | None = None,
    ) -> list[OverlayBox] | None:
        """Draw an already decoded image and its detections."""
        surface = self._surface
        if surface is None:
            logger.error("Detections surface is not initialized.")
            return None

        image = _as_bgr(image)
        h, w = image.shape[:2]
        if surface.mode is RenderMode.POLL:
            surface.resize(w, h)
        elif surface.extent.is_empty:
            logger.warning("Stream surface has no size; skipping frame")
            return None
        surface.clear()

        source = Extent(w, h)
        if (w, h) == (surface.width, surface.height):
            geometry = identity_geometry(source)
            surface.pixels[:] = image
        else:
            geometry = aspect_fill(source, surface.extent)
            self._blit(surface.pixels, image, geometry)

        if readout is not None:
            readout.clear_readout()

        overlays = []
        for det in detections:
            rect = map_box(det, source, geometry.draw_extent, convention, geometry.origin)
            if not rect.is_finite:
                logger.warning(f"Skipping '{det.class_name}' detection with non-finite box")
                continue
            box = self._draw_detection(surface.pixels, det, rect)
            overlays.append(box)
            if readout is not None:
                readout.append_readout_line(f"[x: {box.anchor[0]}, y: {box.anchor[1]}]")

        self.last_overlays = overlays
        return overlays

    @staticmethod
    def _blit(canvas: np.ndarray, image: np.ndarray, geometry: DrawGeometry) -> None:
        """Paste the scaled image at the geometry origin, clipped to the canvas."""
        dw = max(1, int(round(geometry.draw_width)))
        dh = max(1, int(round(geometry.draw_height)))
        interp = cv2.INTER_AREA if geometry.scale < 1 else cv2.INTER_LINEAR
        scaled = cv2.resize(image, (dw, dh), interpolation=interp)

        ox, oy = int(round(geometry.origin_x)), int(round(geometry.origin_y))
        canvas_h, canvas_w = canvas.shape[:2]
        x0, y0 = max(ox, 0), max(oy, 0)
        x1, y1 = min(ox + dw, canvas_w), min(oy + dh, canvas_h)
        if x1 <= x0 or y1 <= y0:
            return
        canvas[y0:y1, x0:x1] = scaled[y0 - oy : y1 - oy, x0 - ox : x1 - ox]

    @staticmethod
    def _draw_detection(canvas: np.ndarray, det: Detection, rect: PixelRect) -> OverlayBox:
        x1, y1, x2, y2 = rect.as_int()

        # Bounding box
        cv2.rectangle(canvas, (x1, y1), (x2, y2), BOX_COLOR, BOX_THICKNESS)

        # Label chip above the top edge
        label = label_text(det)
        (text_w, _), _ = cv2.getTextSize(label, FONT, FONT_SCALE, FONT_THICKNESS)
        chip = (x1, y1 - LABEL_HEIGHT, x1 + text_w + LABEL_PADDING, y1)
        cv2.rectangle(canvas, (chip[0], chip[1]), (chip[2], chip[3]), BOX_COLOR, -1)

        anchor = (x1 + 4, y1 - 4)
        cv2.putText(
            canvas, label, anchor, FONT, FONT_SCALE, TEXT_COLOR, FONT_THICKNESS, cv2.LINE_AA
        )
        return OverlayBox(detection=det, rect=rect, label=label, anchor=anchor, chip=chip)

    def snapshot(self) -> np.ndarray | None:
        """Copy of the current surface pixels."""
        if self._surface is None:
            return None
        return self._surface.pixels.copy()

    def encode_jpeg(self, quality: int = 85) -> bytes | None:
        if self._surface is None or self._surface.extent.is_empty:
            return None
        ok, jpg = cv2.imencode(
            ".jpg", self._surface.pixels, [cv2.IMWRITE_JPEG_QUALITY, quality]
        )
        return jpg.tobytes() if ok else None
