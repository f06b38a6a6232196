"""Tests for command-line configuration."""

from __future__ import annotations

from tits_connector.cli import build_parser, config_from_args
from tits_connector.config import BridgeConfig


def test_defaults_match_config():
    config = config_from_args(build_parser().parse_args([]))
    assert config == BridgeConfig()
    assert config.item_service_port == 42069
    assert config.control_port == 12136
    assert config.reconnect_delay == 5.0


def test_overrides():
    args = build_parser().parse_args([
        "--control-host", "10.0.0.2",
        "--control-port", "12000",
        "--item-service-port", "42070",
        "--snapshot-dir", "/tmp/snap",
        "--log-file", "",
        "--debug",
        "--reconnect-delay", "1.5",
    ])
    config = config_from_args(args)
    assert config.control_host == "10.0.0.2"
    assert config.control_port == 12000
    assert config.item_service_port == 42070
    assert config.snapshot_dir == "/tmp/snap"
    assert config.log_file is None
    assert config.debug is True
    assert config.reconnect_delay == 1.5
