"""Escrow ledger tracking deposited balances and the bidders registry."""

from __future__ import annotations

from typing import Iterator


class Ledger:
    """Participant balances plus the insertion-ordered list of everyone who bid.

    Callers hold the owning auction's lock; the ledger itself does no locking.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._bidders: list[str] = []

    def __contains__(self, participant: object) -> bool:
        return participant in self._balances

    def __iter__(self) -> Iterator[str]:
        return iter(self._bidders)

    def __len__(self) -> int:
        return len(self._bidders)

    def balance_of(self, participant: str) -> int:
        return self._balances.get(participant, 0)

    def deposit(self, participant: str, amount: int) -> int:
        # Registry membership is the "seen before" signal, not a non-zero balance.
        if participant not in self._balances:
            self._bidders.append(participant)
            self._balances[participant] = 0
        self._balances[participant] += amount
        return self._balances[participant]

    def take(self, participant: str, amount: int | None = None) -> int:
        """Remove ``amount`` (default: everything) from a balance and return it."""
        balance = self.balance_of(participant)
        if amount is None:
            amount = balance
        if amount < 0 or amount > balance:
            raise ValueError(f"cannot take {amount} from balance {balance}")
        if participant in self._balances:
            self._balances[participant] = balance - amount
        return amount

    def credit(self, participant: str, amount: int) -> int:
        """Put back an amount previously taken; the participant must already be known."""
        if participant not in self._balances:
            raise KeyError(participant)
        self._balances[participant] += amount
        return self._balances[participant]

    def bidders(self) -> tuple[str, ...]:
        return tuple(self._bidders)

    def entries(self) -> list[tuple[str, int]]:
        return [(participant, self._balances[participant]) for participant in self._bidders]

    @property
    def total_escrowed(self) -> int:
        return sum(self._balances.values())
