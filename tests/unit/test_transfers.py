"""Unit tests for value transfer gateways."""

from __future__ import annotations

import json

import httpx
import pytest

from auction_escrow.auction.engine import AuctionStateMachine
from auction_escrow.settlement.transfers import (
    HttpTransferGateway,
    LocalTransferGateway,
    TransferError,
    build_transfer_gateway,
)
from auction_escrow.transport.canonical_json import canonical_dumps, encode_amounts


def _gateway(handler) -> HttpTransferGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransferGateway(endpoint="https://payouts.test/transfers", client=client)


def _recording_gateway() -> tuple[HttpTransferGateway, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "ok"})

    return _gateway(handler), seen


class TestHttpTransferGateway:
    """Test suite for payouts POSTed to an external payment endpoint."""

    @pytest.mark.asyncio
    async def test_posts_canonical_body_with_idempotency_key(self):
        """Test that the body is canonical JSON and carries a SHA-256 idempotency key."""
        gateway, seen = _recording_gateway()
        await gateway.transfer("auc_1", "alice", 98, "auc_1:1")
        await gateway.close()

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://payouts.test/transfers"
        assert json.loads(request.content) == {
            "amount": "98",
            "auction_id": "auc_1",
            "participant": "alice",
            "reference": "auc_1:1",
        }
        assert len(request.headers["Idempotency-Key"]) == 64

    @pytest.mark.asyncio
    async def test_amount_beyond_float_precision_is_sent_exactly(self):
        """Test that a payout of 10**18 reaches the endpoint digit for digit."""
        gateway, seen = _recording_gateway()
        await gateway.transfer("auc_1", "alice", 10**18, "auc_1:1")

        assert len(seen) == 1
        assert json.loads(seen[0].content)["amount"] == "1000000000000000000"

    @pytest.mark.asyncio
    async def test_amount_beyond_64_bits_is_sent_exactly(self):
        """Test that amounts wider than a machine word are neither truncated nor rejected."""
        gateway, seen = _recording_gateway()
        await gateway.transfer("auc_1", "alice", 10**30, "auc_1:1")

        assert int(json.loads(seen[0].content)["amount"]) == 10**30

    @pytest.mark.asyncio
    async def test_distinct_references_get_distinct_keys(self):
        """Test that identical payouts with different references are not deduplicated."""
        keys = []

        def handler(request: httpx.Request) -> httpx.Response:
            keys.append(request.headers["Idempotency-Key"])
            return httpx.Response(200)

        gateway = _gateway(handler)
        await gateway.transfer("auc_1", "alice", 98, "auc_1:1")
        await gateway.transfer("auc_1", "alice", 98, "auc_1:2")
        assert keys[0] != keys[1]

    @pytest.mark.asyncio
    async def test_error_status_raises_transfer_error(self):
        """Test that a non-2xx response raises TransferError."""
        gateway = _gateway(lambda request: httpx.Response(503))
        with pytest.raises(TransferError):
            await gateway.transfer("auc_1", "alice", 98, "auc_1:1")

    @pytest.mark.asyncio
    async def test_connection_error_raises_transfer_error(self):
        """Test that network errors raise TransferError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        gateway = _gateway(handler)
        with pytest.raises(TransferError):
            await gateway.transfer("auc_1", "alice", 98, "auc_1:1")

    def test_endpoint_required(self):
        """Test that an HTTP gateway requires an endpoint."""
        with pytest.raises(ValueError):
            HttpTransferGateway(endpoint="")


class TestLargeAmountSettlement:
    """Test suite for settling very large bids through the HTTP gateway."""

    @pytest.mark.asyncio
    async def test_withdrawal_of_large_deposit(self, clock, sink):
        """Test that an outbid deposit of 10**18 is refunded minus the fee over HTTP."""
        gateway, seen = _recording_gateway()
        auction = AuctionStateMachine.create(100, clock=clock, gateway=gateway, sink=sink)
        await auction.place_bid("alice", 10**18)
        await auction.place_bid("bob", 2 * 10**18)

        refund = await auction.withdraw_own("alice")

        assert refund.payout == 98 * 10**16
        assert auction.balance_of("alice") == 0
        assert json.loads(seen[0].content)["amount"] == str(98 * 10**16)


class TestEncodeAmounts:
    """Test suite for rendering monetary fields as decimal strings."""

    def test_only_amount_fields_are_rendered(self):
        """Test that other integer fields keep their JSON number type."""
        encoded = encode_amounts({"amount": 2**53 + 1, "sequence": 7, "participant": "alice"})
        assert encoded == {"amount": "9007199254740993", "sequence": 7, "participant": "alice"}

    def test_encoded_payload_serializes(self):
        """Test that a payload orjson would refuse serializes once amounts are encoded."""
        body = canonical_dumps(encode_amounts({"amount": 10**25}))
        assert json.loads(body) == {"amount": str(10**25)}


class TestBuildTransferGateway:
    """Test suite for selecting a gateway backend from configuration."""

    def test_local_backend(self):
        """Test that ``local`` builds the in-process payout book."""
        assert isinstance(build_transfer_gateway("local"), LocalTransferGateway)

    def test_http_backend(self):
        """Test that ``http`` builds an HTTP gateway from the endpoint options."""
        gateway = build_transfer_gateway("http", {"endpoint": "https://payouts.test", "timeout_ms": 500})
        assert isinstance(gateway, HttpTransferGateway)

    def test_unknown_backend(self):
        """Test that unknown backends are rejected."""
        with pytest.raises(ValueError):
            build_transfer_gateway("carrier-pigeon")


class TestLocalTransferGateway:
    """Test suite for the in-process payout book."""

    @pytest.mark.asyncio
    async def test_accumulates_released_value(self):
        """Test that released value is summed per participant across auctions."""
        gateway = LocalTransferGateway()
        await gateway.transfer("auc_1", "alice", 98, "auc_1:1")
        await gateway.transfer("auc_2", "alice", 49, "auc_2:1")
        assert gateway.released_to("alice") == 147
        assert gateway.released_to("bob") == 0
        assert gateway.transfer_count == 2
