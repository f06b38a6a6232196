"""Top-level bridge: owns both peer links, the catalog, and the event loop."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

from tits_connector import protocol
from tits_connector.catalog import ITEMS, TRIGGERS, CatalogStore
from tits_connector.config import BridgeConfig
from tits_connector.constants import ITEM_LIST_RESPONSE, TRIGGER_LIST_RESPONSE
from tits_connector.dispatcher import Dispatcher
from tits_connector.peers import (
    Connected,
    ControlHostConnection,
    Disconnected,
    ItemServiceConnection,
    MessageReceived,
    PeerConnection,
    PeerEvent,
)
from tits_connector.reconciler import Reconciler

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., PeerConnection]


class BridgeController:
    """Wires Touch Portal and TITS together.

    Peer threads only post events; every handler below runs on the thread
    that calls ``run`` (or ``handle_event`` directly in tests), so the
    catalog and the active TITS connection are never touched concurrently.
    """

    def __init__(self, config: BridgeConfig,
                 control_host_factory: ConnectionFactory = ControlHostConnection,
                 item_service_factory: ConnectionFactory = ItemServiceConnection):
        self.config = config
        self.events: queue.Queue = queue.Queue()
        self.store = CatalogStore(config.snapshot_dir)
        self.reconciler = Reconciler(self.store, self.send_to_control_host)
        self.dispatcher = Dispatcher(self)
        self._item_service_factory = item_service_factory
        self.control_host = control_host_factory(
            config.control_host, config.control_port, self.events,
            reconnect_delay=config.reconnect_delay)
        self.item_service = self._new_item_service(config.item_service_port)
        self._running = threading.Event()

    @property
    def item_service_port(self) -> int:
        return self.item_service.port

    def _new_item_service(self, port: int) -> PeerConnection:
        return self._item_service_factory(
            self.config.item_service_host, port, self.events,
            reconnect_delay=self.config.reconnect_delay)

    def send_to_control_host(self, msg: dict) -> bool:
        return self.control_host.send(msg)

    # ─── Lifecycle ───────────────────────────────────────────────────────

    def start(self):
        for kind in (ITEMS, TRIGGERS):
            tokens = self.store.lookup_snapshot_tokens(kind)
            logger.debug("Loaded %d previously published %s",
                         len(tokens), kind.key)
        self._running.set()
        self.control_host.start()
        self.item_service.start()

    def stop(self):
        self._running.clear()
        self.events.put(None)
        self.item_service.stop()
        self.control_host.stop()

    def run(self, timeout: Optional[float] = None):
        """Drain peer events until ``stop`` is called."""
        while self._running.is_set():
            try:
                event = self.events.get(timeout=timeout)
            except queue.Empty:
                continue
            if event is None:
                continue
            try:
                self.handle_event(event)
            except Exception:
                logger.exception("Unhandled error processing %r", event)

    def set_item_service_port(self, port: int):
        """Swap the TITS connection for one pointed at ``port``."""
        old = self.item_service
        self.config.item_service_port = port
        self.item_service = self._new_item_service(port)
        self.item_service.start()
        # The retired thread winds down on its own; its events are ignored.
        old.stop(wait=False)

    # ─── Event handling ──────────────────────────────────────────────────

    def handle_event(self, event: PeerEvent):
        if event.source is self.control_host:
            self._on_control_host(event)
        elif event.source is self.item_service:
            self._on_item_service(event)
        else:
            logger.debug("Ignoring event from retired connection %r",
                         event.source)

    def _on_control_host(self, event: PeerEvent):
        if isinstance(event, Connected):
            self.control_host.send(protocol.pair())
            self.control_host.send(protocol.listen_for_settings())
            # A restarted Touch Portal has lost every published state.
            self.dispatcher.refresh_catalog()
        elif isinstance(event, MessageReceived):
            self._handle_control_host_message(event.payload)
        elif isinstance(event, Disconnected):
            logger.debug("Touch Portal link down: %s", event.reason)

    def _handle_control_host_message(self, msg: dict):
        msg_type = msg.get("type")
        if msg_type in ("info", "settingsUpdated"):
            logger.debug("TP %s received: %s", msg_type, msg)
            self.dispatcher.apply_settings(msg.get("settings"))
        elif msg_type == "action":
            self.dispatcher.handle(msg.get("actionId"), msg.get("data") or [])
        else:
            logger.debug("TP -> %s", msg)

    def _on_item_service(self, event: PeerEvent):
        if isinstance(event, Connected):
            self.dispatcher.refresh_catalog()
        elif isinstance(event, MessageReceived):
            self._handle_item_service_message(event.payload)
        elif isinstance(event, Disconnected):
            logger.debug("TITS link down: %s", event.reason)

    def _handle_item_service_message(self, msg: dict):
        msg_type = msg.get("messageType")
        data = msg.get("data")
        if not isinstance(data, dict):
            data = {}
        if msg_type == ITEM_LIST_RESPONSE and data.get("items") is not None:
            self.reconciler.reconcile_items(data["items"])
        elif msg_type == TRIGGER_LIST_RESPONSE and data.get("triggers") is not None:
            self.reconciler.reconcile_triggers(data["triggers"])
        else:
            logger.debug("TITS -> %s", msg)
