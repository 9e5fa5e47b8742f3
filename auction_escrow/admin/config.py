"""Expose currently loaded server config for debugging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


@router.get("/config")
async def config(request: Request, config: ServerConfig = Depends(_get_config)) -> dict:
    return {
        "version": request.app.version,
        "auction": {
            "default_duration_seconds": config.auction.default_duration_seconds,
            "max_duration_seconds": config.auction.max_duration_seconds,
            "min_increment_percent": config.auction.min_increment_percent,
            "refund_fee_percent": config.auction.refund_fee_percent,
        },
        "transfer_backend": config.transfers.backend,
        "notification_backend": config.notifications.backend,
        "log_level": config.logging.level,
    }
