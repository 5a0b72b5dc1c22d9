"""
Gas price oracle.

The coordinator reads the current gas price twice per request lifecycle:
once when reserving the consumer's funds and once when paying the
fulfiller. Where the price comes from (a node's fee market, a fixed devnet
value, an operator override) is an environmental concern behind this
protocol.
"""

from __future__ import annotations

from threading import Lock
from typing import Protocol


class GasPriceOracle(Protocol):
    def gas_price(self) -> int: ...


class FixedGasPrice:
    """A constant price that operators (and tests) can update at runtime."""

    def __init__(self, price: int = 1) -> None:
        self._lock = Lock()
        self.set(price)

    def set(self, price: int) -> None:
        if not isinstance(price, int) or price < 0:
            raise ValueError("gas price must be a non-negative int")
        with self._lock:
            self._price = price

    def gas_price(self) -> int:
        return self._price


__all__ = ["GasPriceOracle", "FixedGasPrice"]
