"""Touch Portal actions and settings → TITS commands."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Optional

from tits_connector import protocol, sink
from tits_connector.constants import (
    ACTION_ACTIVATE_TRIGGER,
    ACTION_REFRESH,
    ACTION_THROW_ITEM,
    ACTION_THROW_ITEMS,
    ARG_AMOUNT,
    ARG_DELAY,
    ARG_ERROR_ON_MISSING,
    ARG_ITEM,
    ARG_ITEMS,
    ARG_TRIGGER,
    DEFAULT_AMOUNT,
    DEFAULT_DELAY,
    SETTING_DEBUG_LOGGING,
    SETTING_ITEM_SERVICE_PORT,
)
from tits_connector.catalog import ITEMS, TRIGGERS

if TYPE_CHECKING:
    from tits_connector.controller import BridgeController

logger = logging.getLogger(__name__)


# ─── Argument parsing ────────────────────────────────────────────────────────

def arg_value(args: Any, arg_id: str, default: str = "") -> str:
    """Value of the ``{"id": ..., "value": ...}`` entry named ``arg_id``.

    Missing and empty values both give ``default``.
    """
    if isinstance(args, list):
        for entry in args:
            if isinstance(entry, dict) and entry.get("id") == arg_id:
                value = entry.get("value")
                if value not in (None, ""):
                    return str(value)
                break
    return default


def parse_amount(raw: str, default: int = DEFAULT_AMOUNT) -> int:
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return default


def parse_delay(raw: str, default: float = DEFAULT_DELAY) -> float:
    try:
        delay = float(raw)
    except ValueError:
        return default
    return delay if math.isfinite(delay) else default


def parse_flag(raw: str) -> bool:
    return raw == "true"


def parse_port(raw: Any) -> Optional[int]:
    """Port number in 1..65535, or None."""
    if isinstance(raw, bool):
        return None
    try:
        port = int(str(raw).strip())
    except ValueError:
        return None
    if 0 < port < 65536:
        return port
    return None


def _setting_enabled(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "on", "1")
    return raw is True


# ─── Dispatcher ──────────────────────────────────────────────────────────────

class Dispatcher:
    """Translates Control Host requests into Item Service commands."""

    def __init__(self, bridge: BridgeController):
        self.bridge = bridge
        self._handlers = {
            ACTION_REFRESH:          lambda args: self.refresh_catalog(),
            ACTION_THROW_ITEM:       self.throw_item,
            ACTION_THROW_ITEMS:      self.throw_items,
            ACTION_ACTIVATE_TRIGGER: self.activate_trigger,
        }

    @property
    def store(self):
        return self.bridge.store

    def _send(self, msg: dict) -> bool:
        return self.bridge.item_service.send(msg)

    def handle(self, action_id: Any, args: Any) -> None:
        logger.debug("Handling action %s %s", action_id, args)
        handler = (self._handlers.get(action_id)
                   if isinstance(action_id, str) else None)
        if handler is None:
            logger.warning("Unknown action received: %s", action_id)
            return
        handler(args if isinstance(args, list) else [])

    def refresh_catalog(self) -> None:
        if not self.bridge.item_service.connected:
            return
        for msg in protocol.catalog_refresh_requests():
            self._send(msg)
        logger.debug("Requested TITS items & triggers refresh")

    def throw_item(self, args: list) -> None:
        name = arg_value(args, ARG_ITEM)
        record = self.store.resolve_item(name)
        if record is None:
            logger.warning("Item not found: %s", name)
            return
        item_id = ITEMS.identifier(record)
        if not item_id:
            logger.error("Item has no ID: %s", dict(record))
            return
        self._throw([item_id], args)

    def throw_items(self, args: list) -> None:
        names = [n.strip() for n in arg_value(args, ARG_ITEMS).split(",")]
        names = [n for n in names if n]
        ids = []
        for name in names:
            record = self.store.resolve_item(name)
            item_id = ITEMS.identifier(record) if record is not None else ""
            if item_id:
                ids.append(item_id)
        if not ids:
            logger.error("No valid item IDs found for %s", names)
            return
        self._throw(ids, args)

    def _throw(self, item_ids: list[str], args: list) -> None:
        msg = protocol.throw_items_request(
            item_ids,
            delay=parse_delay(arg_value(args, ARG_DELAY, str(DEFAULT_DELAY))),
            amount=parse_amount(arg_value(args, ARG_AMOUNT, str(DEFAULT_AMOUNT))),
            error_on_missing=parse_flag(arg_value(args, ARG_ERROR_ON_MISSING, "false")),
        )
        self._send(msg)

    def activate_trigger(self, args: list) -> None:
        name = arg_value(args, ARG_TRIGGER)
        record = self.store.resolve_trigger(name)
        if record is None:
            logger.warning("Trigger not found: %s", name)
            return
        trigger_id = TRIGGERS.identifier(record)
        if not trigger_id:
            logger.error("Trigger has no ID: %s", dict(record))
            return
        self._send(protocol.trigger_activate_request(
            trigger_id,
            parse_flag(arg_value(args, ARG_ERROR_ON_MISSING, "false")),
        ))

    # ─── Settings ────────────────────────────────────────────────────────

    def apply_settings(self, settings: Any) -> None:
        if not isinstance(settings, list):
            return
        for entry in settings:
            if not isinstance(entry, dict):
                continue
            if SETTING_DEBUG_LOGGING in entry:
                enabled = _setting_enabled(entry[SETTING_DEBUG_LOGGING])
                sink.set_debug(enabled)
                logger.info("Debug Logging set to %s", enabled)
            if SETTING_ITEM_SERVICE_PORT in entry:
                self.update_port(entry[SETTING_ITEM_SERVICE_PORT])

    def update_port(self, raw: Any) -> None:
        logger.info("TITS WebSocket port from TP settings: %s", raw)
        port = parse_port(raw)
        if port is None:
            logger.warning("Invalid TITS port from settings, keeping %d: %r",
                           self.bridge.item_service_port, raw)
            return
        if port == self.bridge.item_service_port:
            logger.debug("TITS port unchanged (%d)", port)
            return
        self.bridge.set_item_service_port(port)
        logger.info("TITS WebSocket port updated: %d", port)
