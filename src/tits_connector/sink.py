"""Log sink: console, log file, and Control Host ``log`` messages."""

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from tits_connector import protocol
from tits_connector.constants import CONTROL_HOST_LEVELS

ROOT_LOGGER = "tits_connector"


class _LineFormatter(logging.Formatter):
    """``[2024-01-01T00:00:00.000Z] [INFO] message``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        stamp = ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"
        line = f"[{stamp}] [{record.levelname}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ControlHostHandler(logging.Handler):
    """Forwards log records to the Control Host as ``log`` messages.

    ``send`` is best-effort and may itself log on failure; nested records
    produced while a record is being forwarded are not forwarded again.
    """

    def __init__(self, send: Callable[[dict], Any], level: int = logging.NOTSET):
        super().__init__(level)
        self.send = send
        self._local = threading.local()

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            level = CONTROL_HOST_LEVELS.get(record.levelname, "info")
            self.send(protocol.log(level, record.getMessage()))
        except Exception:
            self.handleError(record)
        finally:
            self._local.busy = False


def configure_logging(debug: bool = False, log_file: Optional[str] = None,
                      stream=None) -> logging.Logger:
    """Install console and file handlers on the package logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if not isinstance(handler, ControlHostHandler):
            logger.removeHandler(handler)
            handler.close()

    formatter = _LineFormatter()
    console = logging.StreamHandler(stream or sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8", delay=True)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    set_debug(debug)
    return logger


def attach_control_host(send: Callable[[dict], Any]) -> ControlHostHandler:
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, ControlHostHandler):
            logger.removeHandler(handler)
    handler = ControlHostHandler(send)
    logger.addHandler(handler)
    return handler


def set_debug(enabled: bool) -> None:
    logging.getLogger(ROOT_LOGGER).setLevel(
        logging.DEBUG if enabled else logging.INFO)


def debug_enabled() -> bool:
    return logging.getLogger(ROOT_LOGGER).isEnabledFor(logging.DEBUG)
