"""
Payment transfer capability.

The coordinator custodies consumer deposits and pays fulfillers out of them.
Actual value movement is delegated to a `PaymentSink`; a sink signals a
failed transfer by raising, which the coordinator turns into
`PaymentTransferFailed` and a full rollback of the operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, List, Protocol, Set, Tuple

logger = logging.getLogger(__name__)


class TransferError(Exception):
    """Raised by sinks when value cannot be moved."""


class PaymentSink(Protocol):
    def deposit(self, sender: str, amount: int) -> None: ...

    def transfer(self, recipient: str, amount: int) -> None: ...


@dataclass
class InMemoryPayments:
    """
    Devnet/test sink with an internal treasury.

    - deposit() adds to the treasury
    - transfer() moves treasury funds to `credits[recipient]`
    - recipients in `rejecting` refuse incoming value (like a contract
      without a receive hook), which makes the transfer fail
    """

    treasury: int = 0
    credits: Dict[str, int] = field(default_factory=dict)
    rejecting: Set[str] = field(default_factory=set)
    history: List[Tuple[str, str, int]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._lock = RLock()

    def deposit(self, sender: str, amount: int) -> None:
        if amount < 0:
            raise TransferError("deposit amount must be non-negative")
        with self._lock:
            self.treasury += amount
            self.history.append(("deposit", sender, amount))

    def transfer(self, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferError("transfer amount must be non-negative")
        with self._lock:
            if recipient in self.rejecting:
                raise TransferError(f"recipient {recipient} rejected transfer")
            if amount > self.treasury:
                raise TransferError(f"treasury has {self.treasury}, need {amount}")
            self.treasury -= amount
            self.credits[recipient] = self.credits.get(recipient, 0) + amount
            self.history.append(("transfer", recipient, amount))
        logger.debug("payment transfer to=%s amount=%d", recipient, amount)

    def credited(self, recipient: str) -> int:
        return self.credits.get(recipient, 0)


__all__ = ["PaymentSink", "InMemoryPayments", "TransferError"]
