"""Index of independent auction instances served by the API."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..events.notifications import NotificationSink
from ..ledger.billing import MIN_INCREMENT_PERCENT, REFUND_FEE_PERCENT
from ..settlement.transfers import TransferGateway
from .clock import Clock
from .engine import AuctionStateMachine
from .errors import InvalidDuration

logger = logging.getLogger(__name__)


class AuctionRegistry:
    def __init__(
        self,
        *,
        clock: Clock,
        gateway: TransferGateway,
        sink: NotificationSink,
        default_duration_seconds: int = 3600,
        max_duration_seconds: int | None = None,
        min_increment_percent: int = MIN_INCREMENT_PERCENT,
        refund_fee_percent: int = REFUND_FEE_PERCENT,
    ) -> None:
        self.clock = clock
        self.gateway = gateway
        self.sink = sink
        self.default_duration_seconds = default_duration_seconds
        self.max_duration_seconds = max_duration_seconds
        self.min_increment_percent = min_increment_percent
        self.refund_fee_percent = refund_fee_percent
        self._auctions: dict[str, AuctionStateMachine] = {}
        self._lock = asyncio.Lock()

    async def create(self, duration_seconds: int | None = None) -> AuctionStateMachine:
        duration = self.default_duration_seconds if duration_seconds is None else duration_seconds
        if self.max_duration_seconds is not None and isinstance(duration, int):
            if duration > self.max_duration_seconds:
                raise InvalidDuration(
                    f"duration {duration}s exceeds maximum {self.max_duration_seconds}s"
                )
        auction = AuctionStateMachine.create(
            duration,
            clock=self.clock,
            gateway=self.gateway,
            sink=self.sink,
            min_increment_percent=self.min_increment_percent,
            refund_fee_percent=self.refund_fee_percent,
        )
        async with self._lock:
            self._auctions[auction.auction_id] = auction
        logger.info("auction=%s created deadline=%d", auction.auction_id, auction.deadline)
        return auction

    def get(self, auction_id: str) -> AuctionStateMachine:
        try:
            return self._auctions[auction_id]
        except KeyError as exc:
            raise KeyError(f"auction {auction_id} not found") from exc

    def all(self) -> Iterable[AuctionStateMachine]:
        return list(self._auctions.values())
