"""Auction lifecycle finite state machine."""

from __future__ import annotations

from enum import Enum


class AuctionState(str, Enum):
    OPEN = "open"
    ENDED = "ended"


class AuctionEvent(str, Enum):
    FINALIZE = "finalize"


_TRANSITIONS = {
    (AuctionState.OPEN, AuctionEvent.FINALIZE): AuctionState.ENDED,
}


def transition(current: AuctionState, event: AuctionEvent) -> AuctionState:
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError as exc:
        raise ValueError(f"invalid transition from {current} via {event}") from exc
