"""Web UI port: mirrors display state and pushes it over the event bus."""

import logging

from .events import EventBus

logger = logging.getLogger("server.ui")


class WebUI:
    """UI port for browser clients.

    Keeps the latest status text, control enablement and readout so late
    joiners can fetch them from the status endpoint; every change is also
    published on the event bus.
    """

    def __init__(self, bus: EventBus, containers: set[str] | None = None):
        self._bus = bus
        self._containers = containers if containers is not None else {"detectionsView"}
        self.status_text = ""
        self.controls_enabled = False
        self.mounted: str | None = None
        self.readout: list[str] = []

    def mount_surface(self, container: str) -> bool:
        if container not in self._containers:
            return False
        self.mounted = container
        self._bus.publish_nowait("surface.mounted", {"container": container})
        return True

    def set_status_text(self, text: str) -> None:
        self.status_text = text
        self._bus.publish_nowait("connection.status", {"text": text})

    def set_controls_enabled(self, enabled: bool) -> None:
        self.controls_enabled = enabled
        self._bus.publish_nowait("controls.enabled", {"enabled": enabled})

    def clear_readout(self) -> None:
        self.readout = []
        self._bus.publish_nowait("overlay.readout", {"lines": []})

    def append_readout_line(self, line: str) -> None:
        self.readout.append(line)
        self._bus.publish_nowait("overlay.readout", {"lines": list(self.readout)})

    def to_dict(self) -> dict:
        return {
            "status_text": self.status_text,
            "controls_enabled": self.controls_enabled,
            "mounted": self.mounted,
            "readout": list(self.readout),
        }
