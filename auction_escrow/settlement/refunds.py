"""Refund engine releasing escrowed deposits minus the retained fee.

Both refund paths take the amount out of the ledger *before* the transfer is
awaited, so anything that observes the ledger while a payout is in flight
already sees the reduced balance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..auction.clock import Clock
from ..auction.errors import TransferFailed
from ..events.notifications import NotificationSink, refund_issued
from ..ledger.apply import Ledger
from ..ledger.billing import REFUND_FEE_PERCENT, refund_payout
from .transfers import TransferGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Refund:
    participant: str
    gross: int
    payout: int

    @property
    def fee(self) -> int:
        return self.gross - self.payout

    def as_dict(self) -> dict[str, Any]:
        return {
            "participant": self.participant,
            "gross": self.gross,
            "amount": self.payout,
            "fee": self.fee,
        }


@dataclass(frozen=True)
class RefundFailure:
    participant: str
    gross: int
    reason: str

    def as_dict(self) -> dict[str, Any]:
        return {"participant": self.participant, "gross": self.gross, "reason": self.reason}


@dataclass
class RefundReport:
    issued: list[Refund] = field(default_factory=list)
    failed: list[RefundFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def total_paid(self) -> int:
        return sum(refund.payout for refund in self.issued)

    @property
    def total_fees(self) -> int:
        return sum(refund.fee for refund in self.issued)

    def as_dict(self) -> dict[str, Any]:
        return {
            "issued": [refund.as_dict() for refund in self.issued],
            "failed": [failure.as_dict() for failure in self.failed],
            "total_paid": self.total_paid,
            "total_fees": self.total_fees,
        }


class RefundEngine:
    def __init__(
        self,
        auction_id: str,
        ledger: Ledger,
        gateway: TransferGateway,
        sink: NotificationSink,
        clock: Clock,
        *,
        fee_percent: int = REFUND_FEE_PERCENT,
    ) -> None:
        self._auction_id = auction_id
        self._ledger = ledger
        self._gateway = gateway
        self._sink = sink
        self._clock = clock
        self._fee_percent = fee_percent
        self._sequence = 0
        self.total_refunded = 0
        self.total_paid = 0
        self.fees_retained = 0

    async def refund_one(self, participant: str, amount: int | None = None) -> Refund:
        """Release ``amount`` (default: the whole balance) to one participant.

        All-or-nothing: if the transfer raises, the amount goes back on the
        ledger and :class:`TransferFailed` is raised.
        """
        gross = self._ledger.take(participant, amount)
        try:
            refund = await self._release(participant, gross)
        except Exception as exc:
            self._ledger.credit(participant, gross)
            logger.warning(
                "withdrawal for %s in auction %s rolled back: %s",
                participant,
                self._auction_id,
                exc,
            )
            raise TransferFailed(f"payout to {participant} failed") from exc
        return refund

    async def refund_all(self, participants: Iterable[str]) -> RefundReport:
        """Refund every listed participant holding a balance; failures are collected."""
        report = RefundReport()
        for participant in participants:
            if self._ledger.balance_of(participant) == 0:
                continue
            gross = self._ledger.take(participant)
            try:
                refund = await self._release(participant, gross)
            except Exception as exc:
                self._ledger.credit(participant, gross)
                logger.warning(
                    "refund for %s in auction %s failed, balance restored: %s",
                    participant,
                    self._auction_id,
                    exc,
                )
                report.failed.append(RefundFailure(participant, gross, str(exc)))
                continue
            report.issued.append(refund)
            await self._sink.emit(
                refund_issued(self._auction_id, participant, refund.payout, self._clock.now())
            )
        return report

    async def _release(self, participant: str, gross: int) -> Refund:
        payout = refund_payout(gross, self._fee_percent)
        self._sequence += 1
        if payout > 0:
            reference = f"{self._auction_id}:{self._sequence}"
            await self._gateway.transfer(self._auction_id, participant, payout, reference)
        refund = Refund(participant, gross, payout)
        self.total_refunded += gross
        self.total_paid += payout
        self.fees_retained += refund.fee
        logger.info(
            "released %d of %d to %s in auction %s",
            payout,
            gross,
            participant,
            self._auction_id,
        )
        return refund
