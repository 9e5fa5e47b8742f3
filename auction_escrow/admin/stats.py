"""Operational stats endpoint."""

from __future__ import annotations

from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends, Request

from ..auction.registry import AuctionRegistry

router = APIRouter(prefix="/admin", tags=["admin"])

_TOTALS = (
    "total_deposited",
    "total_escrowed",
    "total_refunded",
    "total_paid",
    "fees_retained",
)


def _get_registry(request: Request) -> AuctionRegistry:
    return request.app.state.registry


@router.get("/stats")
async def stats(registry: AuctionRegistry = Depends(_get_registry)) -> dict[str, Any]:
    snapshots = [auction.snapshot() for auction in registry.all()]
    states: Counter[str] = Counter(snapshot["state"] for snapshot in snapshots)
    totals = {key: sum(snapshot[key] for snapshot in snapshots) for key in _TOTALS}
    ended = [snapshot for snapshot in snapshots if snapshot["state"] == "ended"]
    no_winner = sum(1 for snapshot in ended if snapshot["leader"] is None)
    return {
        "total_auctions": len(snapshots),
        "auctions_by_state": dict(states),
        "total_bidders": sum(snapshot["bidders"] for snapshot in snapshots),
        "no_winner_rate": round(no_winner / len(ended), 4) if ended else 0.0,
        **totals,
    }
