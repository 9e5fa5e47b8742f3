"""Bid, escrow and settlement state machine for one single-item auction."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from ..events.notifications import NotificationSink, auction_ended, bid_placed
from ..ledger.apply import Ledger
from ..ledger.billing import (
    MIN_INCREMENT_PERCENT,
    REFUND_FEE_PERCENT,
    accepts,
    is_amount,
    minimum_next_bid,
)
from ..settlement.refunds import Refund, RefundEngine, RefundReport
from ..settlement.transfers import TransferGateway
from .clock import Clock, isoformat
from .errors import (
    AlreadyFinalized,
    AuctionClosed,
    AuctionExpired,
    AuctionNotEnded,
    AuctionStillActive,
    CannotWithdrawLeadingBid,
    InvalidBid,
    InvalidDuration,
    NoDeposit,
    ReentrantCall,
)
from .fsm import AuctionEvent, AuctionState, transition
from .models import LeaderRecord

logger = logging.getLogger(__name__)

# Auctions whose critical section is held by the current task (or a task it spawned).
_ACTIVE: ContextVar[frozenset[str]] = ContextVar("auction_escrow_active", default=frozenset())


class AuctionStateMachine:
    def __init__(
        self,
        auction_id: str,
        created_at: int,
        duration_seconds: int,
        *,
        clock: Clock,
        gateway: TransferGateway,
        sink: NotificationSink,
        min_increment_percent: int = MIN_INCREMENT_PERCENT,
        refund_fee_percent: int = REFUND_FEE_PERCENT,
    ) -> None:
        if not is_amount(duration_seconds) or duration_seconds <= 0:
            raise InvalidDuration(f"duration must be a positive integer, got {duration_seconds!r}")
        self.auction_id = auction_id
        self.created_at = created_at
        self.deadline = created_at + duration_seconds
        self._clock = clock
        self._sink = sink
        self._min_increment_percent = min_increment_percent
        self._state = AuctionState.OPEN
        self._leader = LeaderRecord()
        self._ledger = Ledger()
        self._refunds = RefundEngine(
            auction_id,
            self._ledger,
            gateway,
            sink,
            clock,
            fee_percent=refund_fee_percent,
        )
        self._total_deposited = 0
        self._lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        duration_seconds: int,
        *,
        clock: Clock,
        gateway: TransferGateway,
        sink: NotificationSink,
        auction_id: str | None = None,
        **settings: Any,
    ) -> "AuctionStateMachine":
        return cls(
            auction_id or f"auc_{uuid4().hex}",
            clock.now(),
            duration_seconds,
            clock=clock,
            gateway=gateway,
            sink=sink,
            **settings,
        )

    @property
    def state(self) -> AuctionState:
        return self._state

    @property
    def leader(self) -> LeaderRecord:
        return self._leader

    @asynccontextmanager
    async def _critical_section(self) -> AsyncIterator[None]:
        active = _ACTIVE.get()
        if self.auction_id in active:
            raise ReentrantCall(f"auction {self.auction_id} is already mid-operation")
        token = _ACTIVE.set(active | {self.auction_id})
        try:
            async with self._lock:
                yield
        finally:
            _ACTIVE.reset(token)

    def _now(self, now: Optional[int]) -> int:
        return self._clock.now() if now is None else now

    async def place_bid(self, participant: str, value: int, now: Optional[int] = None) -> LeaderRecord:
        async with self._critical_section():
            now = self._now(now)
            if self._state is AuctionState.ENDED:
                raise AuctionClosed(f"auction {self.auction_id} has been finalized")
            if now >= self.deadline:
                raise AuctionExpired(f"auction {self.auction_id} stopped taking bids at {self.deadline}")
            if not isinstance(participant, str) or not participant:
                raise InvalidBid("participant is required")
            if not accepts(self._leader.amount, value, self._min_increment_percent):
                minimum = max(minimum_next_bid(self._leader.amount, self._min_increment_percent), 1)
                raise InvalidBid(f"bid {value!r} rejected, minimum is {minimum}")
            balance = self._ledger.deposit(participant, value)
            self._leader = LeaderRecord(participant, value)
            self._total_deposited += value
            logger.info(
                "auction=%s bid accepted participant=%s value=%d balance=%d",
                self.auction_id,
                participant,
                value,
                balance,
            )
            await self._sink.emit(bid_placed(self.auction_id, participant, value, now))
            return self._leader

    async def finalize(self, now: Optional[int] = None) -> LeaderRecord:
        async with self._critical_section():
            now = self._now(now)
            if self._state is AuctionState.ENDED:
                raise AlreadyFinalized(f"auction {self.auction_id} was already finalized")
            if now <= self.deadline:
                raise AuctionStillActive(f"auction {self.auction_id} runs until {self.deadline}")
            self._state = transition(self._state, AuctionEvent.FINALIZE)
            logger.info(
                "auction=%s finalized leader=%s amount=%d",
                self.auction_id,
                self._leader.leader,
                self._leader.amount,
            )
            await self._sink.emit(
                auction_ended(self.auction_id, self._leader.leader, self._leader.amount, now)
            )
            return self._leader

    def get_winner(self) -> LeaderRecord:
        if self._state is not AuctionState.ENDED:
            raise AuctionNotEnded(f"auction {self.auction_id} is still open")
        return self._leader

    async def withdraw_own(self, participant: str, now: Optional[int] = None) -> Refund:
        """Pay a participant's deposit back early, minus the fee. Emits no notification."""
        async with self._critical_section():
            if self._state is not AuctionState.OPEN:
                raise AuctionClosed(f"auction {self.auction_id} no longer allows withdrawals")
            balance = self._ledger.balance_of(participant)
            if balance == 0:
                raise NoDeposit(f"{participant} has nothing to withdraw")
            if participant == self._leader.leader:
                surplus = balance - self._leader.amount
                if surplus <= 0:
                    raise CannotWithdrawLeadingBid(f"{participant} holds the leading bid")
                return await self._refunds.refund_one(participant, surplus)
            return await self._refunds.refund_one(participant)

    async def refund_all_non_winners(self, now: Optional[int] = None) -> RefundReport:
        async with self._critical_section():
            if self._state is not AuctionState.ENDED:
                raise AuctionNotEnded(f"auction {self.auction_id} is still open")
            candidates = [p for p in self._ledger.bidders() if p != self._leader.leader]
            report = await self._refunds.refund_all(candidates)
            logger.info(
                "auction=%s bulk refund issued=%d failed=%d paid=%d",
                self.auction_id,
                len(report.issued),
                len(report.failed),
                report.total_paid,
            )
            return report

    def balance_of(self, participant: str) -> int:
        return self._ledger.balance_of(participant)

    def list_bids(self) -> list[tuple[str, int]]:
        return self._ledger.entries()

    def snapshot(self) -> dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "state": self._state.value,
            "created_at": isoformat(self.created_at),
            "deadline": isoformat(self.deadline),
            "leader": self._leader.leader,
            "amount": self._leader.amount,
            "bidders": len(self._ledger),
            "total_deposited": self._total_deposited,
            "total_escrowed": self._ledger.total_escrowed,
            "total_refunded": self._refunds.total_refunded,
            "total_paid": self._refunds.total_paid,
            "fees_retained": self._refunds.fees_retained,
        }
