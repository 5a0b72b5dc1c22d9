"""
native_vrf.coordinator
======================

Consumer-facing side of the protocol: registration, funding, requests,
fulfillment payment, and the callback surface consumers implement.
"""

from __future__ import annotations

from .consumer import CollectingConsumer, ConsumerCallback, VRFConsumerBase
from .coordinator import Coordinator, Listener
from .payments import InMemoryPayments, PaymentSink, TransferError

__all__ = [
    "Coordinator",
    "Listener",
    "ConsumerCallback",
    "VRFConsumerBase",
    "CollectingConsumer",
    "PaymentSink",
    "InMemoryPayments",
    "TransferError",
]
