"""Shared fixtures: a hand-driven clock, an in-process payout book and notification sink."""

from __future__ import annotations

import pytest

from auction_escrow.auction.engine import AuctionStateMachine
from auction_escrow.events.notifications import NotificationSink
from auction_escrow.settlement.transfers import LocalTransferGateway, TransferError


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.current = start

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> int:
        self.current += seconds
        return self.current


class FlakyTransferGateway(LocalTransferGateway):
    """Fails every payout addressed to a participant listed in ``failing``."""

    def __init__(self, failing: set[str] | None = None) -> None:
        super().__init__()
        self.failing = set(failing or ())

    async def transfer(self, auction_id: str, participant: str, amount: int, reference: str) -> None:
        if participant in self.failing:
            raise TransferError(f"{participant} rejected the payout")
        await super().transfer(auction_id, participant, amount, reference)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def gateway():
    return LocalTransferGateway()


@pytest.fixture
def sink():
    return NotificationSink("local")


@pytest.fixture
def make_auction(clock, gateway, sink):
    def _make(duration: int = 100, **overrides) -> AuctionStateMachine:
        kwargs = {"clock": clock, "gateway": gateway, "sink": sink}
        kwargs.update(overrides)
        return AuctionStateMachine.create(duration, **kwargs)

    return _make


@pytest.fixture
def auction(make_auction):
    return make_auction(100)


@pytest.fixture
def flaky_gateway():
    return FlakyTransferGateway()
