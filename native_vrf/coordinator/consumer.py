"""
Consumer callback surface.

Any consumer that wants randomness implements `raw_fulfill_randomness`. The
coordinator calls it at most once per request, passing its own address as
`sender` and a gas meter bounded by the request's callback budget. Consumers
must reject calls from anyone else and repeated deliveries;
`VRFConsumerBase` does both and forwards to the `fulfill_randomness` hook.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Protocol, Set, runtime_checkable

from ..crypto.signer import normalize_address
from ..errors import DuplicateFulfillment, OnlyCoordinatorCanFulfill
from ..gas import GasMeter

logger = logging.getLogger(__name__)


@runtime_checkable
class ConsumerCallback(Protocol):
    def raw_fulfill_randomness(self, request_id: int, random_value: int, *, sender: str, gas: GasMeter) -> None: ...


class VRFConsumerBase:
    """
    Subclass and override `fulfill_randomness`.

    `callback_gas` is charged on every delivery to model the cost of the
    consumer's own work; set it above the request's budget to simulate an
    out-of-gas callback.
    """

    def __init__(self, coordinator_address: str, *, callback_gas: int = 0) -> None:
        self.coordinator_address = normalize_address(coordinator_address)
        self.callback_gas = int(callback_gas)
        self._delivered: Set[int] = set()
        self._lock = Lock()

    def raw_fulfill_randomness(self, request_id: int, random_value: int, *, sender: str, gas: GasMeter) -> None:
        if normalize_address(sender) != self.coordinator_address:
            raise OnlyCoordinatorCanFulfill(sender=sender, coordinator=self.coordinator_address)
        with self._lock:
            if request_id in self._delivered:
                raise DuplicateFulfillment(request_id=request_id)
            self._delivered.add(request_id)
        gas.consume(self.callback_gas)
        self.fulfill_randomness(request_id, random_value)

    def fulfill_randomness(self, request_id: int, random_value: int) -> None:
        raise NotImplementedError

    def delivered(self, request_id: int) -> bool:
        return request_id in self._delivered


class CollectingConsumer(VRFConsumerBase):
    """Keeps every value it receives; handy for demos and tests."""

    def __init__(self, coordinator_address: str, *, callback_gas: int = 0) -> None:
        super().__init__(coordinator_address, callback_gas=callback_gas)
        self.results: Dict[int, int] = {}

    def fulfill_randomness(self, request_id: int, random_value: int) -> None:
        self.results[request_id] = random_value
        logger.info("consumer received request=%d value=%s", request_id, hex(random_value))


__all__ = ["ConsumerCallback", "VRFConsumerBase", "CollectingConsumer"]
