from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from jsonschema import ValidationError

from .admin import config as admin_config
from .admin import health as admin_health
from .admin import stats as admin_stats
from .auction.engine import AuctionStateMachine
from .auction.errors import (
    AlreadyFinalized,
    AuctionClosed,
    AuctionError,
    AuctionExpired,
    AuctionNotEnded,
    AuctionStillActive,
    CannotWithdrawLeadingBid,
    InvalidBid,
    InvalidDuration,
    NoDeposit,
    ReentrantCall,
    TransferFailed,
)
from .auction.clock import SystemClock
from .auction.registry import AuctionRegistry
from .config import ServerConfig, get_server_config
from .events.notifications import NotificationSink
from .settlement.transfers import build_transfer_gateway
from .validation.validator import SchemaRegistry, get_schema_registry

ERROR_STATUS = {
    InvalidDuration: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidBid: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NoDeposit: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AuctionClosed: status.HTTP_409_CONFLICT,
    AuctionExpired: status.HTTP_409_CONFLICT,
    AuctionStillActive: status.HTTP_409_CONFLICT,
    AlreadyFinalized: status.HTTP_409_CONFLICT,
    AuctionNotEnded: status.HTTP_409_CONFLICT,
    CannotWithdrawLeadingBid: status.HTTP_409_CONFLICT,
    ReentrantCall: status.HTTP_409_CONFLICT,
    TransferFailed: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    logging.getLogger("auction_escrow").setLevel(server_config.logging.level)
    schema_registry = get_schema_registry()
    gateway = build_transfer_gateway(
        server_config.transfers.backend,
        server_config.transfers.options,
    )
    sink = NotificationSink(
        backend=server_config.notifications.backend,
        options=server_config.notifications.options,
        history_size=server_config.notifications.history_size,
    )
    registry = AuctionRegistry(
        clock=SystemClock(),
        gateway=gateway,
        sink=sink,
        default_duration_seconds=server_config.auction.default_duration_seconds,
        max_duration_seconds=server_config.auction.max_duration_seconds,
        min_increment_percent=server_config.auction.min_increment_percent,
        refund_fee_percent=server_config.auction.refund_fee_percent,
    )

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.transfer_gateway = gateway
    app.state.notification_sink = sink
    app.state.registry = registry
    app.state.start_time = datetime.now(timezone.utc)

    yield

    await gateway.close()


app = FastAPI(
    title="Auction Escrow Server",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)
app.include_router(admin_stats.router)
app.include_router(admin_config.router)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_schema_service(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


def get_auction_registry(request: Request) -> AuctionRegistry:
    return request.app.state.registry


def http_error(exc: AuctionError) -> HTTPException:
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(
        status_code=code,
        detail={"error": type(exc).__name__, "message": str(exc)},
    )


def lookup_auction(auction_id: str, registry: AuctionRegistry) -> AuctionStateMachine:
    try:
        return registry.get(auction_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"auction {auction_id} not found") from exc


def validate_body(schemas: SchemaRegistry, schema_name: str, payload: dict[str, Any]) -> None:
    try:
        schemas.validate(schema_name, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc.message)) from exc


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(settings: ServerConfig = Depends(get_server_settings)) -> dict[str, Any]:
    return {
        "service": "auction-escrow",
        "version": app.version,
        "auction": {
            "default_duration_seconds": settings.auction.default_duration_seconds,
            "min_increment_percent": settings.auction.min_increment_percent,
            "refund_fee_percent": settings.auction.refund_fee_percent,
        },
    }


@app.get("/ping", tags=["meta"])
async def ping() -> dict[str, Any]:
    return {"status": "ok", "version": app.version}


@app.post("/auctions", tags=["auctions"], status_code=status.HTTP_201_CREATED)
async def create_auction(
    payload: dict[str, Any] | None = Body(default=None),
    registry: AuctionRegistry = Depends(get_auction_registry),
    schemas: SchemaRegistry = Depends(get_schema_service),
) -> dict[str, Any]:
    payload = payload or {}
    validate_body(schemas, "create_auction", payload)
    try:
        auction = await registry.create(payload.get("duration_seconds"))
    except AuctionError as exc:
        raise http_error(exc) from exc
    return auction.snapshot()


@app.get("/auctions", tags=["auctions"])
async def list_auctions(
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> list[dict[str, Any]]:
    return [auction.snapshot() for auction in registry.all()]


@app.get("/auctions/{auction_id}", tags=["auctions"])
async def get_auction(
    auction_id: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> dict[str, Any]:
    return lookup_auction(auction_id, registry).snapshot()


@app.post("/auctions/{auction_id}/bids", tags=["bids"], status_code=status.HTTP_201_CREATED)
async def place_bid(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    registry: AuctionRegistry = Depends(get_auction_registry),
    schemas: SchemaRegistry = Depends(get_schema_service),
) -> dict[str, Any]:
    validate_body(schemas, "place_bid", payload)
    auction = lookup_auction(auction_id, registry)
    participant = payload["participant"]
    try:
        leader = await auction.place_bid(participant, payload["value"])
    except AuctionError as exc:
        raise http_error(exc) from exc
    return {**leader.as_dict(), "balance": auction.balance_of(participant)}


@app.get("/auctions/{auction_id}/bids", tags=["bids"])
async def list_bids(
    auction_id: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> list[dict[str, Any]]:
    auction = lookup_auction(auction_id, registry)
    return [
        {"participant": participant, "balance": balance}
        for participant, balance in auction.list_bids()
    ]


@app.get("/auctions/{auction_id}/balances/{participant}", tags=["bids"])
async def get_balance(
    auction_id: str,
    participant: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> dict[str, Any]:
    auction = lookup_auction(auction_id, registry)
    return {"participant": participant, "balance": auction.balance_of(participant)}


@app.post("/auctions/{auction_id}/finalize", tags=["settlement"])
async def finalize_auction(
    auction_id: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> dict[str, Any]:
    auction = lookup_auction(auction_id, registry)
    try:
        leader = await auction.finalize()
    except AuctionError as exc:
        raise http_error(exc) from exc
    return leader.as_dict()


@app.get("/auctions/{auction_id}/winner", tags=["settlement"])
async def get_winner(
    auction_id: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> dict[str, Any]:
    auction = lookup_auction(auction_id, registry)
    try:
        winner = auction.get_winner()
    except AuctionError as exc:
        raise http_error(exc) from exc
    return winner.as_dict()


@app.post("/auctions/{auction_id}/withdrawals", tags=["settlement"])
async def withdraw_own(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    registry: AuctionRegistry = Depends(get_auction_registry),
    schemas: SchemaRegistry = Depends(get_schema_service),
) -> dict[str, Any]:
    validate_body(schemas, "withdrawal", payload)
    auction = lookup_auction(auction_id, registry)
    try:
        refund = await auction.withdraw_own(payload["participant"])
    except AuctionError as exc:
        raise http_error(exc) from exc
    return refund.as_dict()


@app.post("/auctions/{auction_id}/refunds", tags=["settlement"])
async def refund_non_winners(
    auction_id: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> Any:
    auction = lookup_auction(auction_id, registry)
    try:
        report = await auction.refund_all_non_winners()
    except AuctionError as exc:
        raise http_error(exc) from exc
    if not report.ok:
        return JSONResponse(status_code=status.HTTP_207_MULTI_STATUS, content=report.as_dict())
    return report.as_dict()


@app.get("/auctions/{auction_id}/events", tags=["events"])
async def list_events(
    auction_id: str,
    registry: AuctionRegistry = Depends(get_auction_registry),
) -> list[dict[str, Any]]:
    auction = lookup_auction(auction_id, registry)
    return registry.sink.history(auction.auction_id)

