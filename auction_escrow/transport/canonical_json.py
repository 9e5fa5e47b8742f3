"""Helpers for canonical JSON serialization used for event payloads and idempotency keys."""

from __future__ import annotations

import hashlib
from typing import Any

import orjson

_ORJSON_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_NAIVE_UTC

# orjson stops at 64-bit integers; monetary amounts are unbounded.
AMOUNT_FIELDS = ("amount",)


def encode_amounts(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy with monetary fields rendered as decimal strings."""
    return {
        key: str(value) if key in AMOUNT_FIELDS and isinstance(value, int) else value
        for key, value in payload.items()
    }


def canonical_dumps(payload: Any) -> bytes:
    """Return canonical JSON bytes with sorted keys and stable formatting."""
    return orjson.dumps(payload, option=_ORJSON_OPTIONS)


def canonical_hash(payload: Any) -> str:
    """Return a SHA-256 hex digest for the canonical JSON representation."""
    return hashlib.sha256(canonical_dumps(payload)).hexdigest()
