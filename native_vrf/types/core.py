from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, NewType, Tuple

from ..constants import ZERO_ADDRESS

"""
Core typed records for the VRF coordinator.

Types provided:
  • RequestId          — integer-typed identifier of a randomness request
  • RequestConfig      — per-request bookkeeping owned by the coordinator
  • ConsumerAccount    — registration flag and escrowed balance
  • EventName / Event  — append-only audit records
  • FulfillmentReceipt — what a fulfiller gets back from a successful submit
"""

RequestId = NewType("RequestId", int)


def _require_nonneg(name: str, v: int) -> None:
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError(f"{name} must be int")
    if v < 0:
        raise ValueError(f"{name} must be non-negative (got {v})")


# ---- Requests ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RequestConfig:
    """
    Fields:
      request_id          — id allocated by the ledger
      consumer            — requester address; ZERO_ADDRESS means absent
      callback_gas_budget — cap on compensable gas for the fulfillment
      fulfilled           — one-way False → True
      gas_price           — price used when reserving funds at request time
      reserved            — amount debited from the consumer at request time
    """

    request_id: int
    consumer: str
    callback_gas_budget: int
    fulfilled: bool = False
    gas_price: int = 0
    reserved: int = 0

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_nonneg("request_id", self.request_id)
        _require_nonneg("callback_gas_budget", self.callback_gas_budget)
        _require_nonneg("gas_price", self.gas_price)
        _require_nonneg("reserved", self.reserved)
        if not isinstance(self.consumer, str):
            raise TypeError("consumer must be str")

    @property
    def exists(self) -> bool:
        return self.consumer != ZERO_ADDRESS and self.consumer != ""

    def mark_fulfilled(self) -> "RequestConfig":
        return RequestConfig(
            request_id=self.request_id,
            consumer=self.consumer,
            callback_gas_budget=self.callback_gas_budget,
            fulfilled=True,
            gas_price=self.gas_price,
            reserved=self.reserved,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "consumer": self.consumer,
            "callback_gas_budget": self.callback_gas_budget,
            "fulfilled": self.fulfilled,
            "gas_price": self.gas_price,
            "reserved": self.reserved,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RequestConfig":
        return cls(
            request_id=int(d["request_id"]),
            consumer=str(d["consumer"]),
            callback_gas_budget=int(d["callback_gas_budget"]),
            fulfilled=bool(d.get("fulfilled", False)),
            gas_price=int(d.get("gas_price", 0)),
            reserved=int(d.get("reserved", 0)),
        )

    @classmethod
    def absent(cls, request_id: int) -> "RequestConfig":
        return cls(request_id=request_id, consumer=ZERO_ADDRESS, callback_gas_budget=0)


# ---- Consumers ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConsumerAccount:
    address: str
    registered: bool = False
    balance: int = 0

    def __post_init__(self) -> None:  # type: ignore[override]
        _require_nonneg("balance", self.balance)

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "registered": self.registered, "balance": self.balance}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ConsumerAccount":
        return cls(address=str(d["address"]), registered=bool(d["registered"]), balance=int(d["balance"]))


# ---- Events ------------------------------------------------------------------


class EventName(str, Enum):
    CONSUMER_REGISTERED = "ConsumerRegistered"
    CONSUMER_FUNDED = "ConsumerFunded"
    REQUEST_INITIATED = "RequestInitiated"
    REQUEST_FULFILLED = "RequestFulfilled"
    FUNDS_WITHDRAWN = "FundsWithdrawn"
    PARAMETER_CHANGED = "ParameterChanged"


@dataclass(frozen=True, slots=True)
class Event:
    name: EventName
    args: Mapping[str, Any]
    seq: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name.value, "args": dict(self.args), "seq": self.seq}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Event":
        return cls(name=EventName(d["name"]), args=dict(d["args"]), seq=int(d.get("seq", 0)))


# ---- Receipts ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FulfillmentReceipt:
    """
    Fields:
      request_id   — fulfilled request
      random_value — value delivered to the consumer
      fulfiller    — address that was paid
      gas_used     — gas compensated (min(measured, callback_gas_budget))
      gas_measured — raw gas measured during fulfillment
      gas_price    — price used for the payment
      payment      — gas_price * gas_used + fixed_premium
      callback_ok  — False if the consumer callback raised or ran out of gas
      events       — events emitted by the fulfillment
    """

    request_id: int
    random_value: int
    fulfiller: str
    gas_used: int
    gas_measured: int
    gas_price: int
    payment: int
    callback_ok: bool
    events: Tuple[Event, ...] = field(default_factory=tuple)

    @property
    def cost(self) -> int:
        """What the gas consumed would cost the fulfiller at `gas_price`."""
        return self.gas_measured * self.gas_price

    @property
    def profit(self) -> int:
        return self.payment - self.cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "random_value": hex(self.random_value),
            "fulfiller": self.fulfiller,
            "gas_used": self.gas_used,
            "gas_measured": self.gas_measured,
            "gas_price": self.gas_price,
            "payment": self.payment,
            "callback_ok": self.callback_ok,
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "FulfillmentReceipt":
        rv = d["random_value"]
        return cls(
            request_id=int(d["request_id"]),
            random_value=int(rv, 16) if isinstance(rv, str) else int(rv),
            fulfiller=str(d["fulfiller"]),
            gas_used=int(d["gas_used"]),
            gas_measured=int(d["gas_measured"]),
            gas_price=int(d["gas_price"]),
            payment=int(d["payment"]),
            callback_ok=bool(d["callback_ok"]),
            events=tuple(Event.from_dict(e) for e in d.get("events", ())),
        )


__all__ = [
    "RequestId",
    "RequestConfig",
    "ConsumerAccount",
    "EventName",
    "Event",
    "FulfillmentReceipt",
]
