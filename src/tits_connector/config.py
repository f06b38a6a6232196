"""Startup configuration for the connector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tits_connector.constants import (
    CONTROL_HOST,
    CONTROL_PORT,
    ITEM_SERVICE_HOST,
    ITEM_SERVICE_PORT,
    LOG_FILE,
    RECONNECT_DELAY,
)


@dataclass
class BridgeConfig:
    control_host: str = CONTROL_HOST
    control_port: int = CONTROL_PORT
    item_service_host: str = ITEM_SERVICE_HOST
    item_service_port: int = ITEM_SERVICE_PORT
    snapshot_dir: str = "."
    log_file: Optional[str] = LOG_FILE
    debug: bool = False
    reconnect_delay: float = RECONNECT_DELAY
