"""Value release to participants outside the engine."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Mapping, Protocol

import httpx

from ..transport.canonical_json import canonical_dumps, canonical_hash, encode_amounts

logger = logging.getLogger(__name__)


class TransferError(RuntimeError):
    """Raised when a payout provably did not reach the participant."""


class TransferGateway(Protocol):
    async def transfer(self, auction_id: str, participant: str, amount: int, reference: str) -> None: ...

    async def close(self) -> None: ...


class LocalTransferGateway:
    """In-process payout book, used for development and tests."""

    def __init__(self) -> None:
        self._released: dict[str, int] = defaultdict(int)
        self._references: list[str] = []
        self._lock = asyncio.Lock()

    async def transfer(self, auction_id: str, participant: str, amount: int, reference: str) -> None:
        async with self._lock:
            self._released[participant] += amount
            self._references.append(reference)
        logger.info(
            "[local-transfer] auction=%s participant=%s amount=%d ref=%s",
            auction_id,
            participant,
            amount,
            reference,
        )

    def released_to(self, participant: str) -> int:
        return self._released.get(participant, 0)

    @property
    def transfer_count(self) -> int:
        return len(self._references)

    async def close(self) -> None:
        return None


class HttpTransferGateway:
    def __init__(
        self,
        *,
        endpoint: str,
        timeout_ms: int = 2000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("http transfer backend requires endpoint")
        self._endpoint = endpoint
        self._timeout = timeout_ms / 1000
        self._client = client or httpx.AsyncClient()

    async def transfer(self, auction_id: str, participant: str, amount: int, reference: str) -> None:
        body = encode_amounts(
            {
                "auction_id": auction_id,
                "participant": participant,
                "amount": amount,
                "reference": reference,
            }
        )
        try:
            response = await self._client.post(
                self._endpoint,
                content=canonical_dumps(body),
                headers={
                    "Content-Type": "application/json",
                    "Idempotency-Key": canonical_hash(body),
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransferError(f"payout to {participant} failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


def build_transfer_gateway(backend: str, options: Mapping[str, Any] | None = None) -> TransferGateway:
    options = dict(options or {})
    if backend == "local":
        return LocalTransferGateway()
    if backend == "http":
        return HttpTransferGateway(
            endpoint=options.get("endpoint", ""),
            timeout_ms=int(options.get("timeout_ms", 2000)),
        )
    raise ValueError(f"unknown transfer backend {backend}")
