"""Connection status tracking and control gating."""

import logging
from typing import Any

from .machines.base import Machine
from .models import ConnectionState
from .ports import UIPort

logger = logging.getLogger("overlay.connection")

STATUS_TEXT = {
    ConnectionState.CONNECTING: "⏳ Connecting...",
    ConnectionState.CONNECTED: "🟢 Connected",
    ConnectionState.DISCONNECTING: "🟡 Disconnecting...",
    ConnectionState.DISCONNECTED: "🔴 Disconnected",
}


class ConnectionController:
    """Reflects the latest reported connection state and gates the controls.

    Events are applied in arrival order with no transition checks, so an
    out-of-order event simply becomes the displayed state. Controls are
    enabled only while CONNECTED.
    """

    def __init__(self, ui: UIPort, view_state):
        self._ui = ui
        self._view = view_state

    @property
    def state(self) -> ConnectionState:
        return self._view.connection_state

    def lock_controls(self) -> None:
        self._ui.set_controls_enabled(False)

    def update(self, state: ConnectionState) -> None:
        self._view.connection_state = state
        self._ui.set_status_text(STATUS_TEXT[state])
        self._ui.set_controls_enabled(state is ConnectionState.CONNECTED)
        logger.info(f"Connection state: {state.value}")

    def handle_event(self, event: Any) -> None:
        try:
            state = ConnectionState.parse(event)
        except ValueError as e:
            logger.warning(str(e))
            return
        self.update(state)

    def observe(self, machine: Machine) -> None:
        """Follow ``machine``'s connection-state notifications."""
        machine.on_connection_state_change(self.handle_event)
