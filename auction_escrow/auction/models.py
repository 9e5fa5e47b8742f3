"""Shared auction data structures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class LeaderRecord:
    leader: Optional[str] = None
    amount: int = 0

    @property
    def has_winner(self) -> bool:
        return self.leader is not None

    def as_dict(self) -> dict[str, Any]:
        return {"leader": self.leader, "amount": self.amount}
