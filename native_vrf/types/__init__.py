from __future__ import annotations

from .core import (
    ConsumerAccount,
    Event,
    EventName,
    FulfillmentReceipt,
    RequestConfig,
    RequestId,
)

__all__ = [
    "RequestId",
    "RequestConfig",
    "ConsumerAccount",
    "EventName",
    "Event",
    "FulfillmentReceipt",
]
