import asyncio

import pytest

from overlay.connection import STATUS_TEXT, ConnectionController
from overlay.machines.mock import MockMachine
from overlay.models import ConnectionState
from overlay.session import ViewState


@pytest.fixture
def controller(ui):
    return ConnectionController(ui, ViewState())


def test_starts_locked(ui, controller):
    controller.lock_controls()
    assert ui.controls_enabled is False
    assert controller.state is ConnectionState.DISCONNECTED


@pytest.mark.parametrize(
    "event,enabled",
    [
        ({"eventType": "connected"}, True),
        ({"eventType": "connecting"}, False),
        ({"eventType": "disconnecting"}, False),
        ({"eventType": "disconnected"}, False),
    ],
)
def test_controls_enabled_only_when_connected(ui, controller, event, enabled):
    controller.handle_event(event)
    assert ui.controls_enabled is enabled
    assert ui.status_text == STATUS_TEXT[ConnectionState.parse(event)]


def test_status_texts(ui, controller):
    controller.update(ConnectionState.CONNECTING)
    assert ui.status_text == "⏳ Connecting..."
    controller.update(ConnectionState.CONNECTED)
    assert ui.status_text == "🟢 Connected"
    controller.update(ConnectionState.DISCONNECTING)
    assert ui.status_text == "🟡 Disconnecting..."
    controller.update(ConnectionState.DISCONNECTED)
    assert ui.status_text == "🔴 Disconnected"


def test_events_applied_in_arrival_order(ui, controller):
    controller.handle_event({"eventType": "disconnecting"})
    controller.handle_event({"eventType": "connected"})
    assert controller.state is ConnectionState.CONNECTED
    assert ui.controls_enabled is True

    controller.handle_event({"eventType": "connecting"})
    assert controller.state is ConnectionState.CONNECTING
    assert ui.controls_enabled is False


def test_unknown_event_is_ignored(ui, controller, caplog):
    controller.update(ConnectionState.CONNECTED)
    controller.handle_event({"eventType": "rebooting"})
    assert controller.state is ConnectionState.CONNECTED
    assert ui.controls_enabled is True
    assert "rebooting" in caplog.text


def test_observed_machine_drives_controls(ui, controller):
    machine = MockMachine()
    controller.lock_controls()

    async def _run():
        # Connected before the listener existed
        await machine.connect()
        controller.update(ConnectionState.CONNECTED)
        controller.observe(machine)
        enabled_after_connect = ui.controls_enabled

        await machine.simulate(ConnectionState.DISCONNECTED)
        enabled_after_drop = ui.controls_enabled

        await machine.simulate(ConnectionState.CONNECTED)
        return enabled_after_connect, enabled_after_drop

    after_connect, after_drop = asyncio.run(_run())
    assert after_connect is True
    assert after_drop is False
    assert ui.controls_enabled is True
    assert ui.status_text == "🟢 Connected"


def test_machine_close_reports_disconnect(ui, controller):
    machine = MockMachine()
    controller.observe(machine)

    async def _run():
        await machine.connect()
        await machine.close()

    asyncio.run(_run())
    assert controller.state is ConnectionState.DISCONNECTED
    assert ui.controls_enabled is False
