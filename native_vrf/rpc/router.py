"""
native_vrf.rpc.router
---------------------

REST surface for the coordinator (prefix `/vrf` by default):

    GET  /status                → counters, difficulty, premium, gas price
    GET  /requests/{id}         → RequestConfig for a request
    GET  /results/{id}          → random result for a request (0 until fulfilled)
    GET  /consumers/{address}   → registration flag and balance
    GET  /events                → audit log (seq > since)

    POST /consumers/register    → register a consumer
    POST /consumers/fund        → credit a consumer balance
    POST /consumers/withdraw    → withdraw from a consumer balance
    POST /requests              → request randomness
    POST /fulfill               → submit a puzzle solution

`create_app` also serves `/healthz` and the Prometheus `/metrics` scrape.

Callers are identified by the address in the request body; put an
authenticating proxy in front of this router outside devnets.

Domain errors map to 4xx responses whose `detail` is `VRFError.to_dict()`,
so clients can branch on the stable `code`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, FastAPI, HTTPException, Path, Query, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from pydantic import BaseModel, Field

from ..constants import MAX_REQUEST_ID, UINT256_MAX
from ..coordinator import Coordinator
from ..errors import (
    AuthorizationError,
    EconomicError,
    RequestNotFound,
    SequencingError,
    VRFError,
)
from ..utils.hash import from_hex

logger = logging.getLogger(__name__)

T = TypeVar("T")

# --------------------------------------------------------------------------------------
# Request models
# --------------------------------------------------------------------------------------


class RegisterReq(BaseModel):
    consumer: str = Field(..., description="Consumer address")


class AmountReq(BaseModel):
    consumer: str = Field(..., description="Consumer address")
    amount: int = Field(..., ge=0)


class RandomnessReq(BaseModel):
    consumer: str = Field(..., description="Consumer address")
    gas_limit: int = Field(0, ge=0, description="Callback gas budget; 0 uses the default")


class FulfillReq(BaseModel):
    fulfiller: str = Field(..., description="Submitting fulfiller address (receives payment)")
    request_id: int = Field(..., ge=0, le=MAX_REQUEST_ID)
    input: int = Field(..., ge=0, le=UINT256_MAX, description="Puzzle input found by the solver")
    signature: str = Field(..., description="0x-prefixed 65-byte signature")


# --------------------------------------------------------------------------------------
# Error mapping
# --------------------------------------------------------------------------------------


def status_for(err: VRFError) -> int:
    if isinstance(err, RequestNotFound):
        return 404
    if isinstance(err, AuthorizationError):
        return 403
    if isinstance(err, SequencingError):
        return 409
    if isinstance(err, EconomicError):
        return 402
    return 400


def _call(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    try:
        return fn(*args, **kwargs)
    except VRFError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_dict()) from e


# --------------------------------------------------------------------------------------
# REST router
# --------------------------------------------------------------------------------------


def get_router(coordinator: Coordinator, *, prefix: str = "/vrf") -> APIRouter:
    r = APIRouter(prefix=prefix, tags=["vrf"])

    @r.get("/status")
    def status() -> dict:
        return coordinator.status()

    @r.get("/requests/{request_id}")
    def request_config(request_id: int = Path(..., ge=0, le=MAX_REQUEST_ID)) -> dict:
        config = coordinator.request_config(request_id)
        if not config.exists:
            err = RequestNotFound(request_id=request_id)
            raise HTTPException(status_code=404, detail=err.to_dict())
        return config.to_dict()

    @r.get("/results/{request_id}")
    def result(request_id: int = Path(..., ge=0, le=MAX_REQUEST_ID)) -> dict:
        return {
            "request_id": request_id,
            "random_value": hex(coordinator.random_result(request_id)),
            "fulfilled": coordinator.ledger.is_fulfilled(request_id),
        }

    @r.get("/consumers/{address}")
    def consumer(address: str) -> dict:
        return {
            "address": address,
            "registered": coordinator.is_registered(address),
            "balance": coordinator.balance_of(address),
        }

    @r.get("/events")
    def events(
        since: int = Query(0, ge=0),
        limit: int = Query(256, ge=1, le=4096),
    ) -> list[dict]:
        return [e.to_dict() for e in coordinator.events(since)[:limit]]

    @r.post("/consumers/register")
    def register(req: RegisterReq) -> dict:
        created = _call(coordinator.register_consumer, req.consumer)
        return {"consumer": req.consumer, "registered": True, "created": created}

    @r.post("/consumers/fund")
    def fund(req: AmountReq) -> dict:
        balance = _call(coordinator.fund_consumer, req.consumer, req.amount)
        return {"consumer": req.consumer, "balance": balance}

    @r.post("/consumers/withdraw")
    def withdraw(req: AmountReq) -> dict:
        balance = _call(coordinator.withdraw_funds, req.consumer, req.amount)
        return {"consumer": req.consumer, "balance": balance}

    @r.post("/requests")
    def request_randomness(req: RandomnessReq) -> dict:
        rid = _call(coordinator.request_randomness, req.consumer, req.gas_limit)
        return {"request_id": rid}

    @r.post("/fulfill")
    def fulfill(req: FulfillReq) -> dict:
        try:
            sig = from_hex(req.signature)
        except ValueError:
            raise HTTPException(status_code=422, detail="signature must be hex")
        receipt = _call(coordinator.fulfill_randomness, req.fulfiller, req.request_id, req.input, sig)
        return receipt.to_dict()

    return r


def mount_vrf_rpc(app: FastAPI, *, coordinator: Coordinator, rest_prefix: str = "/vrf") -> None:
    """Mount the coordinator REST endpoints on an existing FastAPI app."""
    app.include_router(get_router(coordinator, prefix=rest_prefix))


def create_app(coordinator: Coordinator, *, title: str = "native-vrf") -> FastAPI:
    app = FastAPI(title=title)
    mount_vrf_rpc(app, coordinator=coordinator)

    @app.get("/healthz")
    def healthz() -> dict:
        return {"ok": True}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    return app


__all__ = ["get_router", "mount_vrf_rpc", "create_app", "status_for"]
