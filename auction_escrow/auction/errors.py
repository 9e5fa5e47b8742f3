"""Errors raised by auction lifecycle and settlement operations."""

from __future__ import annotations


class AuctionError(ValueError):
    """Base class for rejected auction operations. No state is mutated."""


class InvalidDuration(AuctionError):
    """Raised when an auction is created with a non-positive or oversized duration."""


class AuctionClosed(AuctionError):
    """Raised when a bid or withdrawal reaches an auction that was finalized."""


class AuctionExpired(AuctionError):
    """Raised when a bid arrives at or after the deadline."""


class InvalidBid(AuctionError):
    """Raised when a bid is not positive or misses the minimum increment."""


class AuctionStillActive(AuctionError):
    """Raised when finalize is attempted before the deadline has passed."""


class AlreadyFinalized(AuctionError):
    """Raised when finalize is attempted a second time."""


class AuctionNotEnded(AuctionError):
    """Raised when a post-finalize operation runs on an open auction."""


class NoDeposit(AuctionError):
    """Raised when a participant with a zero balance asks for a withdrawal."""


class CannotWithdrawLeadingBid(AuctionError):
    """Raised when the leader holds nothing beyond the standing bid."""


class ReentrantCall(AuctionError):
    """Raised when an operation is re-entered from inside another one on the same auction."""


class TransferFailed(AuctionError):
    """Raised when a withdrawal payout could not be released; the balance is restored."""
