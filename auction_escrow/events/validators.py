"""Schema validation wrappers for outgoing notification payloads."""

from __future__ import annotations

from ..validation.validator import get_schema_registry


EVENT_SCHEMA_MAP = {
    "bid_placed": "event_bid_placed",
    "auction_ended": "event_auction_ended",
    "refund_issued": "event_refund_issued",
}


def validate_event(event_type: str, payload: dict) -> str:
    schema = EVENT_SCHEMA_MAP.get(event_type)
    if not schema:
        raise ValueError(f"unknown event type {event_type}")
    registry = get_schema_registry()
    registry.validate(schema, payload)
    return schema
