"""Configuration helpers for the escrow server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"


@dataclass(frozen=True)
class AuctionConfig:
    default_duration_seconds: int
    max_duration_seconds: int
    min_increment_percent: int
    refund_fee_percent: int


@dataclass(frozen=True)
class TransferConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class NotificationConfig:
    backend: str
    history_size: int
    options: Mapping[str, Any]


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class ServerConfig:
    auction: AuctionConfig
    transfers: TransferConfig
    notifications: NotificationConfig
    logging: LoggingConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def load_server_config(path: Path) -> ServerConfig:
    data = _load_yaml(path)
    auction = data.get("auction", {})
    transfers = data.get("transfers", {})
    notifications = data.get("notifications", {})
    logging_section = data.get("logging", {})
    config = ServerConfig(
        auction=AuctionConfig(
            default_duration_seconds=int(auction.get("default_duration_seconds", 3600)),
            max_duration_seconds=int(auction.get("max_duration_seconds", 7 * 24 * 3600)),
            min_increment_percent=int(auction.get("min_increment_percent", 5)),
            refund_fee_percent=int(auction.get("refund_fee_percent", 2)),
        ),
        transfers=TransferConfig(
            backend=str(transfers.get("backend", "local")),
            options=dict(transfers.get("options") or {}),
        ),
        notifications=NotificationConfig(
            backend=str(notifications.get("backend", "local")),
            history_size=int(notifications.get("history_size", 256)),
            options=dict(notifications.get("options") or {}),
        ),
        logging=LoggingConfig(level=str(logging_section.get("level", "INFO")).upper()),
    )
    if not 0 <= config.auction.refund_fee_percent <= 100:
        raise ValueError("refund_fee_percent must be between 0 and 100")
    if config.auction.min_increment_percent < 0:
        raise ValueError("min_increment_percent must not be negative")
    return config


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("ESCROW_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return load_server_config(path)
