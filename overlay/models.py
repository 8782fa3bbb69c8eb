"""Data models shared by the capture, render and connection layers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BoxConvention(str, Enum):
    """Coordinate space a capture source reports its bounding boxes in."""

    NORMALIZED = "normalized"  # fractions of source width/height in [0, 1]
    ABSOLUTE = "absolute"  # source-image pixels


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"

    @classmethod
    def parse(cls, event: Any) -> "ConnectionState":
        """Read a state from an event payload, a bare string, or a state.

        Accepts ``{"eventType": ...}`` / ``{"event_type": ...}`` payloads as
        emitted by machine handles. Raises ValueError for anything else.
        """
        if isinstance(event, cls):
            return event
        if isinstance(event, dict):
            event = event.get("eventType", event.get("event_type"))
        if isinstance(event, str):
            try:
                return cls(event.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown connection event: {event!r}")


def _coord(data: dict, snake: str, camel: str) -> float | None:
    value = data.get(snake, data.get(camel))
    return None if value is None else float(value)


@dataclass
class Detection:
    """One recognized object instance in a frame.

    Coordinates are either normalized or in source-image pixels, depending on
    the ``BoxConvention`` of the frame that carries the detection. Missing
    coordinates stay ``None`` and are drawn as 0. ``x_min <= x_max`` is not
    enforced.
    """

    class_name: str
    confidence: float
    x_min: float | None = None
    y_min: float | None = None
    x_max: float | None = None
    y_max: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Detection":
        """Build from a vision-service payload (snake_case or camelCase keys)."""
        return cls(
            class_name=str(data.get("class_name", data.get("className", ""))),
            confidence=float(data.get("confidence", 0.0) or 0.0),
            x_min=_coord(data, "x_min", "xMin"),
            y_min=_coord(data, "y_min", "yMin"),
            x_max=_coord(data, "x_max", "xMax"),
            y_max=_coord(data, "y_max", "yMax"),
        )

    def to_dict(self) -> dict:
        return {
            "class_name": self.class_name,
            "confidence": round(self.confidence, 3),
            "x_min": self.x_min,
            "y_min": self.y_min,
            "x_max": self.x_max,
            "y_max": self.y_max,
        }


@dataclass
class CapturedFrame:
    """One capture cycle: an optional encoded image plus its detections.

    ``detections`` order is drawing order (later entries on top). A frame
    without ``image`` (e.g. a point-cloud-only capture) is skipped by the
    renderer.
    """

    image: bytes | None = None
    detections: list[Detection] = field(default_factory=list)
    convention: BoxConvention = BoxConvention.ABSOLUTE
    mime_type: str = "image/jpeg"
