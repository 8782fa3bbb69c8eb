"""UI port: the minimal surface the core needs from whatever displays it."""

from typing import Protocol


class ReadoutSink(Protocol):
    """Coordinate readout text target."""

    def clear_readout(self) -> None: ...

    def append_readout_line(self, line: str) -> None: ...


class UIPort(ReadoutSink, Protocol):
    """Display contract for the renderer and the connection controller.

    ``mount_surface`` returns False when the container does not exist.
    """

    def mount_surface(self, container: str) -> bool: ...

    def set_status_text(self, text: str) -> None: ...

    def set_controls_enabled(self, enabled: bool) -> None: ...
