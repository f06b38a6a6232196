"""Wire names, endpoints, and lookup tables for the TITS connector."""

from __future__ import annotations


PLUGIN_ID = "tits.connector"

# ─── Endpoints ───────────────────────────────────────────────────────────────

CONTROL_HOST = "127.0.0.1"
CONTROL_PORT = 12136

ITEM_SERVICE_HOST = "127.0.0.1"
ITEM_SERVICE_PORT = 42069
ITEM_SERVICE_PATH = "/websocket"

RECONNECT_DELAY = 5.0
CONNECT_TIMEOUT = 5.0

# Messages queued per connection before sends start being dropped.
OUTBOX_SIZE = 256

LOG_FILE = "plugin-debug.log"

# ─── Control Host (Touch Portal) ─────────────────────────────────────────────

SETTINGS_SECTION = "communication_listen_settings"

SETTING_DEBUG_LOGGING = "Debug Logging"
SETTING_ITEM_SERVICE_PORT = "TITS Port"

ACTION_REFRESH = "tits.refreshPlugin"
ACTION_THROW_ITEM = "tits.throwItem"
ACTION_THROW_ITEMS = "tits.throwItems"
ACTION_ACTIVATE_TRIGGER = "tits.triggerthrow"

ARG_ITEM = "item"
ARG_ITEMS = "items"
ARG_TRIGGER = "trigger"
ARG_AMOUNT = "amountOfThrows"
ARG_DELAY = "delayTime"
ARG_ERROR_ON_MISSING = "errorOnMissingID"

DEFAULT_AMOUNT = 1
DEFAULT_DELAY = 0.05

# ─── Item Service (TITS public API) ──────────────────────────────────────────

API_NAME = "TITSPublicApi"
API_VERSION = "1.0"

ITEM_LIST_REQUEST = "TITSItemListRequest"
TRIGGER_LIST_REQUEST = "TITSTriggerListRequest"
THROW_ITEMS_REQUEST = "TITSThrowItemsRequest"
TRIGGER_ACTIVATE_REQUEST = "TITSTriggerActivateRequest"

ITEM_LIST_RESPONSE = "TITSItemListResponse"
TRIGGER_LIST_RESPONSE = "TITSTriggerListResponse"

# ─── Logging ─────────────────────────────────────────────────────────────────

# Level names as the Control Host expects them in "log" messages.
CONTROL_HOST_LEVELS: dict[str, str] = {
    "DEBUG":    "debug",
    "INFO":     "info",
    "WARNING":  "warn",
    "ERROR":    "error",
    "CRITICAL": "error",
}
