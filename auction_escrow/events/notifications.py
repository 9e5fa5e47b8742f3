"""Notification sink delivering auction events to off-chain observers."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Mapping, Optional
from uuid import uuid4

from ..auction.clock import isoformat
from ..transport.canonical_json import canonical_dumps, encode_amounts
from .validators import validate_event

try:  # pragma: no cover - optional dependency
    from google.cloud import pubsub_v1
except Exception:  # pragma: no cover - fallback when library missing
    pubsub_v1 = None

logger = logging.getLogger(__name__)

BID_PLACED = "bid_placed"
AUCTION_ENDED = "auction_ended"
REFUND_ISSUED = "refund_issued"


def _envelope(event_type: str, auction_id: str, ts: int, **fields: Any) -> dict[str, Any]:
    return {
        "event_id": f"evt_{uuid4().hex}",
        "event_type": event_type,
        "auction_id": auction_id,
        "ts": isoformat(ts),
        **fields,
    }


def bid_placed(auction_id: str, participant: str, amount: int, ts: int) -> dict[str, Any]:
    return _envelope(BID_PLACED, auction_id, ts, participant=participant, amount=amount)


def auction_ended(auction_id: str, leader: Optional[str], amount: int, ts: int) -> dict[str, Any]:
    return _envelope(AUCTION_ENDED, auction_id, ts, leader=leader, amount=amount)


def refund_issued(auction_id: str, participant: str, amount: int, ts: int) -> dict[str, Any]:
    return _envelope(REFUND_ISSUED, auction_id, ts, participant=participant, amount=amount)


class _PublisherProtocol:
    async def publish(self, event: dict[str, Any]) -> None:  # pragma: no cover - protocol
        raise NotImplementedError


class _LocalPublisher(_PublisherProtocol):
    async def publish(self, event: dict[str, Any]) -> None:
        logger.info(
            "[local-notify] auction=%s event=%s delivered",
            event.get("auction_id"),
            event.get("event_type"),
        )


class _PubSubPublisher(_PublisherProtocol):
    def __init__(self, options: Mapping[str, Any]) -> None:
        if pubsub_v1 is None:
            raise RuntimeError("google-cloud-pubsub is required for pubsub backend")
        self._project_id = options.get("project_id")
        if not self._project_id:
            raise ValueError("pubsub backend requires project_id")
        self._topic_prefix = options.get("topic_prefix", "auction-escrow")
        self._publisher = pubsub_v1.PublisherClient()

    def _topic_path(self, event_type: str) -> str:
        topic = f"{self._topic_prefix}-{event_type.replace('_', '-')}"
        if topic.startswith("projects/"):
            return topic
        return self._publisher.topic_path(self._project_id, topic)

    async def publish(self, event: dict[str, Any]) -> None:
        topic = self._topic_path(event["event_type"])
        future = self._publisher.publish(
            topic,
            canonical_dumps(encode_amounts(event)),
            auction_id=event["auction_id"],
            event_type=event["event_type"],
        )
        await asyncio.to_thread(future.result)


class NotificationSink:
    """Fire-and-forget delivery. Failures are logged and never reach the caller."""

    def __init__(
        self,
        backend: str = "local",
        options: Mapping[str, Any] | None = None,
        history_size: int = 256,
    ) -> None:
        options = options or {}
        if backend == "pubsub":
            self._publisher: _PublisherProtocol = _PubSubPublisher(options.get("pubsub", {}))
        elif backend == "local":
            self._publisher = _LocalPublisher()
        else:
            raise ValueError(f"unknown notification backend {backend}")
        self._history_size = history_size
        # One bounded history per auction.
        self._history: dict[str, deque[dict[str, Any]]] = {}

    async def emit(self, event: dict[str, Any]) -> None:
        try:
            validate_event(event.get("event_type", ""), event)
            await self._publisher.publish(event)
        except Exception:
            logger.exception(
                "notification %s for auction %s was not delivered",
                event.get("event_type"),
                event.get("auction_id"),
            )
            return
        auction_id = event.get("auction_id", "")
        if auction_id not in self._history:
            self._history[auction_id] = deque(maxlen=self._history_size)
        self._history[auction_id].append(event)

    def history(self, auction_id: str | None = None) -> list[dict[str, Any]]:
        if auction_id is None:
            return [event for events in self._history.values() for event in events]
        return list(self._history.get(auction_id, ()))
