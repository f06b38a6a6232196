"""Message builders and decoders for the Control Host and Item Service."""

from __future__ import annotations

import json
import time
from typing import Any, Optional

from tits_connector.constants import (
    API_NAME,
    API_VERSION,
    ITEM_LIST_REQUEST,
    PLUGIN_ID,
    SETTINGS_SECTION,
    THROW_ITEMS_REQUEST,
    TRIGGER_ACTIVATE_REQUEST,
    TRIGGER_LIST_REQUEST,
)


class MalformedMessage(ValueError):
    """An inbound frame that is not a JSON object."""

    def __init__(self, reason: str, raw: str):
        super().__init__(reason)
        self.raw = raw


def decode_message(raw: str) -> dict:
    text = raw.strip()
    # TITS sometimes ships the document as a quoted JSON string.
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1].replace('\\"', '"')
    try:
        msg = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedMessage(str(exc), raw) from exc
    if not isinstance(msg, dict):
        raise MalformedMessage(f"expected an object, got {type(msg).__name__}", raw)
    return msg


def encode_message(msg: dict) -> str:
    return json.dumps(msg, separators=(",", ":"))


def new_request_id() -> str:
    """Millisecond timestamp used only to correlate replies in logs."""
    return str(int(time.time() * 1000))


# ─── Item Service ────────────────────────────────────────────────────────────

def _envelope(message_type: str, request_id: Optional[str] = None,
              data: Optional[dict] = None) -> dict:
    msg: dict[str, Any] = {
        "apiName": API_NAME,
        "apiVersion": API_VERSION,
    }
    if request_id is not None:
        msg["requestID"] = request_id
    msg["messageType"] = message_type
    if data is not None:
        msg["data"] = data
    return msg


def catalog_refresh_requests() -> list[dict]:
    return [_envelope(ITEM_LIST_REQUEST), _envelope(TRIGGER_LIST_REQUEST)]


def throw_items_request(item_ids: list[str], delay: float, amount: int,
                        error_on_missing: bool,
                        request_id: Optional[str] = None) -> dict:
    return _envelope(
        THROW_ITEMS_REQUEST,
        request_id or new_request_id(),
        {
            "items": list(item_ids),
            "delayTime": delay,
            "amountOfThrows": amount,
            "errorOnMissingID": error_on_missing,
        },
    )


def trigger_activate_request(trigger_id: str, error_on_missing: bool,
                             request_id: Optional[str] = None) -> dict:
    return _envelope(
        TRIGGER_ACTIVATE_REQUEST,
        request_id or new_request_id(),
        {"triggerID": trigger_id, "errorOnMissingID": error_on_missing},
    )


# ─── Control Host ────────────────────────────────────────────────────────────

def pair() -> dict:
    return {"type": "pair", "id": PLUGIN_ID}


def listen_for_settings(section: str = SETTINGS_SECTION) -> dict:
    return {"type": "listenForSettings", "section": section}


def log(level: str, message: str) -> dict:
    return {"type": "log", "level": level, "message": message}


def choice_update(choice_id: str, values: list[str]) -> dict:
    return {"type": "choiceUpdate", "id": choice_id, "value": list(values)}


def create_state(state_id: str, desc: str, default_value: str,
                 parent_group: str, force_update: bool = False) -> dict:
    return {
        "type": "createState",
        "id": state_id,
        "desc": desc,
        "defaultValue": default_value,
        "forceUpdate": force_update,
        "parentGroup": parent_group,
    }


def remove_state(state_id: str) -> dict:
    return {"type": "removeState", "id": state_id}
