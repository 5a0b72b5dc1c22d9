"""
native_vrf.gas — deterministic gas accounting for fulfillments.

Gas here is an accounting unit: each step of a fulfillment (signature
recovery, hashing, storage writes, the consumer callback, the payment
transfer) charges a fixed cost from `native_vrf.constants`, and the total
drives the fulfiller's payment.

- Gas is charged *before* the step runs.
- If a meter would exceed its limit, `OutOfGas` is raised and nothing is
  charged.
- The consumer callback runs on a child meter whose limit is the request's
  callback budget; whatever it used is folded back into the parent.
"""
from __future__ import annotations

from typing import Optional

from .errors import OutOfGas

# Effectively unbounded; fulfillment measurement is capped by the budget afterwards.
UNLIMITED = (1 << 63) - 1


class GasMeter:
    """
    Typical usage:
        gm = GasMeter()
        gm.consume(GAS_FULFILL_BASE)
        child = gm.child(limit=config.callback_gas_budget)
        ...
        gm.absorb(child)
    """

    __slots__ = ("_limit", "_used")

    def __init__(self, *, limit: int = UNLIMITED) -> None:
        self._limit = self._require_int_ge(limit, 0, "limit")
        self._used = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return self._limit - self._used

    def consume(self, amount: int) -> None:
        """Charge `amount` gas; raise OutOfGas if this would exceed the limit."""
        amt = self._require_int_ge(amount, 0, "consume amount")
        new_used = self._used + amt
        if new_used > self._limit:
            raise OutOfGas(needed=amt, used=self._used, limit=self._limit)
        self._used = new_used

    def child(self, *, limit: Optional[int] = None) -> "GasMeter":
        """A fresh meter bounded by `limit` and by what is left here."""
        cap = self.remaining if limit is None else min(limit, self.remaining)
        return GasMeter(limit=cap)

    def absorb(self, child: "GasMeter") -> None:
        """Fold a child's usage into this meter."""
        self.consume(child.used)

    @staticmethod
    def _require_int_ge(v: int, lb: int, name: str) -> int:
        if not isinstance(v, int):
            raise TypeError(f"{name} must be int, got {type(v).__name__}")
        if v < lb:
            raise ValueError(f"{name} must be >= {lb}, got {v}")
        return v

    def __repr__(self) -> str:  # pragma: no cover
        return f"GasMeter(limit={self._limit}, used={self._used})"


__all__ = ["GasMeter", "UNLIMITED"]
