"""Self-healing connections to the Control Host and the Item Service.

Each connection runs its own daemon thread that connects, reads, and after
any failure waits a fixed delay before trying again, forever. Everything it
observes is posted as an event to a shared queue; the bridge controller
consumes that queue on one thread.
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Iterator, Optional, Union

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from tits_connector.constants import (
    CONNECT_TIMEOUT,
    ITEM_SERVICE_PATH,
    OUTBOX_SIZE,
    RECONNECT_DELAY,
)
from tits_connector.protocol import MalformedMessage, decode_message, encode_message

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (OSError, WebSocketException)


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()


@dataclass
class Connected:
    source: "PeerConnection"


@dataclass
class MessageReceived:
    source: "PeerConnection"
    payload: dict = field(default_factory=dict)


@dataclass
class Disconnected:
    source: "PeerConnection"
    reason: str = ""


PeerEvent = Union[Connected, MessageReceived, Disconnected]


class PeerConnection:
    """Connect/reconnect state machine for one peer.

    Subclasses provide ``_open``, ``_frames``, ``_write`` and
    ``_close_transport``.
    """

    name = "peer"

    def __init__(self, host: str, port: int, events: queue.Queue,
                 reconnect_delay: float = RECONNECT_DELAY,
                 outbox_size: int = OUTBOX_SIZE):
        self.host = host
        self.port = port
        self.events = events
        self.reconnect_delay = reconnect_delay
        self.outbox_size = outbox_size
        self.state = ConnectionState.DISCONNECTED
        self._outbox: Optional[queue.Queue] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.host}:{self.port} {self.state.name}>"

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"{self.name}-{self.port}", daemon=True)
        self._thread.start()

    def stop(self, wait: bool = True):
        """Close the link and cancel reconnects; ``wait`` joins the thread."""
        self._stop.set()
        self._outbox = None
        self._close_transport()
        if (wait and self._thread
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=2.0)
        self.state = ConnectionState.DISCONNECTED

    def send(self, msg: dict) -> bool:
        """Queue ``msg`` for the writer thread. Never blocks.

        Returns False when the message was dropped: not connected, or the
        peer has stopped reading and the outbox is full.
        """
        outbox = self._outbox
        if not self.connected or outbox is None:
            return False
        try:
            outbox.put_nowait(encode_message(msg))
        except queue.Full:
            logger.warning("%s is not reading, dropped %s message", self.name,
                           msg.get("type") or msg.get("messageType") or "a")
            return False
        return True

    def _write_logged(self, data: str) -> bool:
        try:
            self._write(data)
        except _TRANSPORT_ERRORS as exc:
            logger.error("Failed to send to %s: %s", self.name, exc)
            return False
        return True

    def _drain(self, outbox: queue.Queue):
        # One writer per session; it retires as soon as the session ends.
        while self._outbox is outbox:
            try:
                data = outbox.get(timeout=0.25)
            except queue.Empty:
                continue
            if self._outbox is not outbox:
                break
            self._write_logged(data)

    # ─── Thread body ─────────────────────────────────────────────────────

    def _run(self):
        while not self._stop.is_set():
            self._run_once()
            if self._stop.is_set():
                break
            logger.warning("Disconnected from %s, retrying in %gs...",
                           self.name, self.reconnect_delay)
            self._stop.wait(self.reconnect_delay)

    def _run_once(self):
        self.state = ConnectionState.CONNECTING
        try:
            self._open()
        except _TRANSPORT_ERRORS as exc:
            self.state = ConnectionState.DISCONNECTED
            logger.error("%s connection failed: %s", self.name, exc)
            self.events.put(Disconnected(self, str(exc)))
            return
        if self._stop.is_set():
            # stop() raced the connect attempt
            self._close_transport()
            self.state = ConnectionState.DISCONNECTED
            return

        outbox: queue.Queue = queue.Queue(maxsize=self.outbox_size)
        self._outbox = outbox
        threading.Thread(target=self._drain, args=(outbox,),
                         name=f"{self.name}-{self.port}-writer",
                         daemon=True).start()

        self.state = ConnectionState.CONNECTED
        self.events.put(Connected(self))
        reason = "closed by peer"
        try:
            for raw in self._frames():
                self._deliver(raw)
        except _TRANSPORT_ERRORS as exc:
            if not self._stop.is_set():
                logger.error("%s socket error: %s", self.name, exc)
            reason = str(exc)
        finally:
            self.state = ConnectionState.DISCONNECTED
            self._outbox = None
            self._close_transport()
        self.events.put(Disconnected(self, reason))

    def _deliver(self, raw: str):
        if not raw.strip():
            return
        try:
            payload = decode_message(raw)
        except MalformedMessage as exc:
            logger.error("Failed to parse %s message: %s (raw: %s)",
                         self.name, exc, exc.raw)
            return
        self.events.put(MessageReceived(self, payload))

    # ─── Transport hooks ─────────────────────────────────────────────────

    def _open(self):
        raise NotImplementedError

    def _frames(self) -> Iterator[str]:
        raise NotImplementedError

    def _write(self, data: str):
        raise NotImplementedError

    def _close_transport(self):
        raise NotImplementedError


class ControlHostConnection(PeerConnection):
    """Raw TCP link to Touch Portal, one JSON document per line."""

    name = "Touch Portal"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._sock: Optional[socket.socket] = None

    def _open(self):
        logger.debug("Connecting to %s on %s:%d", self.name, self.host, self.port)
        sock = socket.create_connection((self.host, self.port),
                                        timeout=CONNECT_TIMEOUT)
        sock.settimeout(None)
        self._sock = sock
        logger.info("Connected to %s on %s:%d", self.name, self.host, self.port)

    def _frames(self) -> Iterator[str]:
        sock = self._sock
        if sock is None:
            return
        buf = b""
        while not self._stop.is_set():
            chunk = sock.recv(4096)
            if not chunk:
                break
            buf += chunk
            *lines, buf = buf.split(b"\n")
            for line in lines:
                yield line.decode("utf-8", errors="replace")
        if buf.strip():
            yield buf.decode("utf-8", errors="replace")

    def _write(self, data: str):
        sock = self._sock
        if sock is None:
            raise ConnectionError("socket is closed")
        sock.sendall(data.encode("utf-8") + b"\n")

    def _close_transport(self):
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()


class ItemServiceConnection(PeerConnection):
    """WebSocket link to the TITS public API."""

    name = "TITS"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._ws = None

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}{ITEM_SERVICE_PATH}"

    def _open(self):
        logger.info("Connecting to %s WebSocket at %s", self.name, self.url)
        self._ws = ws_connect(self.url, open_timeout=CONNECT_TIMEOUT)
        logger.info("Connected to %s WebSocket", self.name)

    def _frames(self) -> Iterator[str]:
        ws = self._ws
        if ws is None:
            return
        for frame in ws:
            if isinstance(frame, bytes):
                frame = frame.decode("utf-8", errors="replace")
            yield frame

    def _write(self, data: str):
        ws = self._ws
        if ws is None:
            raise ConnectionError("websocket is closed")
        ws.send(data)

    def _close_transport(self):
        ws, self._ws = self._ws, None
        if ws is not None:
            ws.close()
