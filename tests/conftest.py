"""Shared pytest fixtures."""

from __future__ import annotations

import queue

import pytest

from tits_connector.config import BridgeConfig
from tits_connector.controller import BridgeController
from tits_connector.peers import ConnectionState


class FakeConnection:
    """Stand-in peer link that records what would have been written."""

    def __init__(self, host: str, port: int, events: queue.Queue,
                 reconnect_delay: float = 5.0):
        self.host = host
        self.port = port
        self.events = events
        self.reconnect_delay = reconnect_delay
        self.state = ConnectionState.DISCONNECTED
        self.sent: list[dict] = []
        self.started = False
        self.stopped = False
        self.stop_waited: bool | None = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def start(self):
        self.started = True

    def stop(self, wait: bool = True):
        self.stopped = True
        self.stop_waited = wait
        self.state = ConnectionState.DISCONNECTED

    def send(self, msg: dict) -> bool:
        if not self.connected:
            return False
        self.sent.append(msg)
        return True

    def sent_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m.get("type") == msg_type]


@pytest.fixture
def bridge(tmp_path) -> BridgeController:
    """Controller wired to fake links, both connected, snapshots in tmp_path."""
    config = BridgeConfig(snapshot_dir=str(tmp_path), log_file=None)
    ctl = BridgeController(config,
                           control_host_factory=FakeConnection,
                           item_service_factory=FakeConnection)
    ctl.control_host.state = ConnectionState.CONNECTED
    ctl.item_service.state = ConnectionState.CONNECTED
    return ctl


@pytest.fixture
def items() -> list[dict]:
    return [
        {"name": "Egg", "id": "abc2"},
        {"name": "Confetti", "id": "abc1"},
    ]
