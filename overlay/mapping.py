"""Detection box → draw-surface pixel coordinate mapping."""

import math
from dataclasses import dataclass

from .models import BoxConvention, Detection


@dataclass(frozen=True)
class Extent:
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class PixelRect:
    """Pixel-space rectangle. Width/height go negative for inverted boxes."""

    x: float
    y: float
    width: float
    height: float

    @property
    def x_max(self) -> float:
        return self.x + self.width

    @property
    def y_max(self) -> float:
        return self.y + self.height

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height))

    def as_int(self) -> tuple[int, int, int, int]:
        """(x1, y1, x2, y2) rounded for drawing."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.x_max)),
            int(round(self.y_max)),
        )


@dataclass(frozen=True)
class DrawGeometry:
    """Where a source image lands on the surface."""

    scale: float
    draw_width: float
    draw_height: float
    origin_x: float = 0.0
    origin_y: float = 0.0

    @property
    def draw_extent(self) -> Extent:
        return Extent(self.draw_width, self.draw_height)

    @property
    def origin(self) -> tuple[float, float]:
        return (self.origin_x, self.origin_y)


def identity_geometry(image: Extent) -> DrawGeometry:
    """1:1 placement at the surface origin."""
    return DrawGeometry(1.0, image.width, image.height)


def aspect_fill(image: Extent, surface: Extent) -> DrawGeometry:
    """Scale ``image`` to cover ``surface``, centred, cropping overflow.

    scale = max(surfW / imgW, surfH / imgH). Never letterboxes.
    """
    if image.is_empty:
        return DrawGeometry(1.0, image.width, image.height)
    scale = max(surface.width / image.width, surface.height / image.height)
    draw_w = image.width * scale
    draw_h = image.height * scale
    return DrawGeometry(
        scale=scale,
        draw_width=draw_w,
        draw_height=draw_h,
        origin_x=(surface.width - draw_w) / 2,
        origin_y=(surface.height - draw_h) / 2,
    )


def map_box(
    box: Detection,
    source: Extent,
    target: Extent,
    convention: BoxConvention = BoxConvention.ABSOLUTE,
    origin: tuple[float, float] = (0.0, 0.0),
) -> PixelRect:
    """Map a detection box into surface pixels.

    Args:
        box: Detection whose coordinates follow ``convention``
        source: Native size of the image the detections refer to
        target: Size the image is drawn at
        convention: NORMALIZED boxes are multiplied by the target size;
            ABSOLUTE boxes are scaled by target/source
        origin: Surface position of the drawn image's top-left corner

    Returns:
        PixelRect, possibly with negative width/height for inverted input.
    """
    x_min = float(box.x_min or 0)
    y_min = float(box.y_min or 0)
    x_max = float(box.x_max or 0)
    y_max = float(box.y_max or 0)

    if convention is BoxConvention.NORMALIZED:
        sx, sy = target.width, target.height
    else:
        sx = target.width / source.width if source.width else 1.0
        sy = target.height / source.height if source.height else 1.0

    ox, oy = origin
    return PixelRect(
        x=x_min * sx + ox,
        y=y_min * sy + oy,
        width=(x_max - x_min) * sx,
        height=(y_max - y_min) * sy,
    )


def label_text(detection: Detection) -> str:
    return f"{detection.class_name} ({detection.confidence * 100:.1f}%)"
