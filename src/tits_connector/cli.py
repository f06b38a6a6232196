"""CLI entry point for the TITS ↔ Touch Portal connector."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from tits_connector import sink
from tits_connector.config import BridgeConfig
from tits_connector.constants import (
    CONTROL_HOST,
    CONTROL_PORT,
    ITEM_SERVICE_HOST,
    ITEM_SERVICE_PORT,
    LOG_FILE,
    RECONNECT_DELAY,
)
from tits_connector.controller import BridgeController

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Touch Portal plugin bridge for TITS (The Integrated Throwing System)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Keeps Touch Portal's item/trigger choice lists and states in sync with the
running TITS instance and forwards throw/trigger actions to it. The TITS
port can also be changed live from the plugin settings in Touch Portal.

Examples:
  tits-connector
  tits-connector --item-service-port 42070 --debug
""",
    )
    parser.add_argument("--control-host", default=CONTROL_HOST,
                        help=f"Touch Portal host (default: {CONTROL_HOST})")
    parser.add_argument("--control-port", type=int, default=CONTROL_PORT,
                        help=f"Touch Portal plugin port (default: {CONTROL_PORT})")
    parser.add_argument("--item-service-host", default=ITEM_SERVICE_HOST,
                        help=f"TITS WebSocket host (default: {ITEM_SERVICE_HOST})")
    parser.add_argument("--item-service-port", type=int, default=ITEM_SERVICE_PORT,
                        help=f"TITS WebSocket port (default: {ITEM_SERVICE_PORT})")
    parser.add_argument("--snapshot-dir", default=".",
                        help="Directory holding items_list.txt and triggers_list.txt")
    parser.add_argument("--log-file", default=LOG_FILE,
                        help=f"Append log lines to FILE (default: {LOG_FILE}); "
                             "pass an empty string to disable")
    parser.add_argument("--debug", action="store_true",
                        help="Start with debug logging enabled")
    parser.add_argument("--reconnect-delay", type=float, default=RECONNECT_DELAY,
                        help=f"Seconds between reconnect attempts (default: {RECONNECT_DELAY:g})")
    return parser


def config_from_args(args: argparse.Namespace) -> BridgeConfig:
    return BridgeConfig(
        control_host=args.control_host,
        control_port=args.control_port,
        item_service_host=args.item_service_host,
        item_service_port=args.item_service_port,
        snapshot_dir=args.snapshot_dir,
        log_file=args.log_file or None,
        debug=args.debug,
        reconnect_delay=args.reconnect_delay,
    )


def main(argv: Optional[list[str]] = None):
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    sink.configure_logging(debug=config.debug, log_file=config.log_file)
    bridge = BridgeController(config)
    sink.attach_control_host(bridge.send_to_control_host)

    bridge.start()
    logger.info("TITS Plugin started (items + triggers dynamic mode, auto-port from TP)")

    try:
        bridge.run()
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        bridge.stop()
        logger.info("Goodbye.")
