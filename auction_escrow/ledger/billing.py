"""Bid acceptance and refund fee arithmetic. Integer-only, truncating division."""

from __future__ import annotations

MIN_INCREMENT_PERCENT = 5
REFUND_FEE_PERCENT = 2


def is_amount(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def minimum_next_bid(current_highest: int, increment_percent: int = MIN_INCREMENT_PERCENT) -> int:
    return current_highest * (100 + increment_percent) // 100


def accepts(
    current_highest: int,
    incoming: object,
    increment_percent: int = MIN_INCREMENT_PERCENT,
) -> bool:
    """Return True when a single incoming payment may become the leading bid."""
    if not is_amount(incoming):
        return False
    return incoming > 0 and incoming >= minimum_next_bid(current_highest, increment_percent)


def refund_payout(balance: int, fee_percent: int = REFUND_FEE_PERCENT) -> int:
    return balance * (100 - fee_percent) // 100


def retained_fee(balance: int, fee_percent: int = REFUND_FEE_PERCENT) -> int:
    return balance - refund_payout(balance, fee_percent)
