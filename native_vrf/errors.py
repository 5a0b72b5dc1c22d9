"""
Error types for the native VRF coordinator, ledger and solver.

These are lightweight, serializable, and safe to surface over RPC/logs.
Every error carries a stable `code` and a `details` mapping; callers can catch
`VRFError` to handle every rejection, or one of the category bases below:

- ConfigurationError : zero difficulty, zero funding, bad settings
- SequencingError    : out-of-order / already fulfilled / unknown request
- AuthorizationError : unregistered consumer, non-owner, wrong callback sender
- EconomicError      : insufficient balance, failed payment transfer
- ProofError         : signature recovery failure, difficulty not met
- SolverError        : puzzle search budget exhausted or cancelled
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional


class VRFError(Exception):
    """Base class for native VRF domain errors."""

    code: str = "VRF_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except Exception:
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class ConfigurationError(VRFError):
    code = "VRF_CONFIG_ERROR"


class SequencingError(VRFError):
    code = "VRF_SEQUENCING_ERROR"


class AuthorizationError(VRFError):
    code = "VRF_AUTHORIZATION_ERROR"


class EconomicError(VRFError):
    code = "VRF_ECONOMIC_ERROR"


class ProofError(VRFError):
    code = "VRF_PROOF_ERROR"


class SolverError(VRFError):
    code = "VRF_SOLVER_ERROR"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class InvalidDifficulty(ConfigurationError):
    code = "VRF_INVALID_DIFFICULTY"

    def __init__(self, difficulty: int, *, message: str = "difficulty must be a positive integer") -> None:
        super().__init__(message, details={"difficulty": difficulty})


class ZeroFunding(ConfigurationError):
    code = "VRF_ZERO_FUNDING"

    def __init__(self, consumer: str, *, message: str = "funding amount must be > 0") -> None:
        super().__init__(message, details={"consumer": consumer})


class ZeroWithdrawal(ConfigurationError):
    code = "VRF_ZERO_WITHDRAWAL"

    def __init__(self, consumer: str, *, message: str = "withdrawal amount must be > 0") -> None:
        super().__init__(message, details={"consumer": consumer})


class InvalidConsumer(ConfigurationError):
    """The zero address (or an empty identity) cannot hold a consumer account."""

    code = "VRF_INVALID_CONSUMER"

    def __init__(self, consumer: str, *, message: str = "consumer address must be non-zero") -> None:
        super().__init__(message, details={"consumer": consumer})


# ---------------------------------------------------------------------------
# Sequencing
# ---------------------------------------------------------------------------


class OutOfOrderFulfillment(SequencingError):
    """A request may only be fulfilled right after its predecessor."""

    code = "VRF_OUT_OF_ORDER"

    def __init__(self, *, request_id: int, expected_id: int, message: str = "request fulfilled out of order") -> None:
        super().__init__(message, details={"request_id": int(request_id), "expected_id": int(expected_id)})


class AlreadyFulfilled(SequencingError):
    code = "VRF_ALREADY_FULFILLED"

    def __init__(self, *, request_id: int, message: str = "request already fulfilled") -> None:
        super().__init__(message, details={"request_id": int(request_id)})


class RequestNotFound(SequencingError):
    code = "VRF_REQUEST_NOT_FOUND"

    def __init__(self, *, request_id: int, message: str = "no such request") -> None:
        super().__init__(message, details={"request_id": int(request_id)})


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class NotRegistered(AuthorizationError):
    code = "VRF_NOT_REGISTERED"

    def __init__(self, consumer: str, *, message: str = "consumer is not registered") -> None:
        super().__init__(message, details={"consumer": consumer})


class Unauthorized(AuthorizationError):
    """Caller lacks the owner capability required for a parameter change."""

    code = "VRF_UNAUTHORIZED"

    def __init__(self, caller: str, *, action: str, message: str = "caller is not the owner") -> None:
        super().__init__(message, details={"caller": caller, "action": action})


class TransferDuringCallback(AuthorizationError):
    """Value cannot move through the coordinator while a consumer callback runs."""

    code = "VRF_TRANSFER_IN_CALLBACK"

    def __init__(self, *, action: str, message: str = "value transfers are not allowed inside a callback") -> None:
        super().__init__(message, details={"action": action})


class OnlyCoordinatorCanFulfill(AuthorizationError):
    code = "VRF_ONLY_COORDINATOR"

    def __init__(self, *, sender: str, coordinator: str, message: str = "only the coordinator can fulfill") -> None:
        super().__init__(message, details={"sender": sender, "coordinator": coordinator})


class DuplicateFulfillment(AuthorizationError):
    code = "VRF_DUPLICATE_DELIVERY"

    def __init__(self, *, request_id: int, message: str = "randomness already delivered for request") -> None:
        super().__init__(message, details={"request_id": int(request_id)})


# ---------------------------------------------------------------------------
# Economic
# ---------------------------------------------------------------------------


class InsufficientBalance(EconomicError):
    code = "VRF_INSUFFICIENT_BALANCE"

    def __init__(self, consumer: str, *, required: int, available: int, message: str = "insufficient balance") -> None:
        super().__init__(
            message,
            details={"consumer": consumer, "required": int(required), "available": int(available)},
        )


class PaymentTransferFailed(EconomicError):
    code = "VRF_PAYMENT_FAILED"

    def __init__(self, *, recipient: str, amount: int, reason: Optional[str] = None, message: str = "payment transfer failed") -> None:
        d: Dict[str, Any] = {"recipient": recipient, "amount": int(amount)}
        if reason:
            d["reason"] = reason
        super().__init__(message, details=d)


# ---------------------------------------------------------------------------
# Proof
# ---------------------------------------------------------------------------


class InvalidProof(ProofError):
    code = "VRF_INVALID_PROOF"

    def __init__(self, *, request_id: int, message: str = "signature does not prove the fulfiller key") -> None:
        super().__init__(message, details={"request_id": int(request_id)})


class DifficultyNotMet(ProofError):
    code = "VRF_DIFFICULTY_NOT_MET"

    def __init__(self, *, request_id: int, difficulty: int, message: str = "signature value does not meet difficulty") -> None:
        super().__init__(message, details={"request_id": int(request_id), "difficulty": int(difficulty)})


# ---------------------------------------------------------------------------
# Solver / gas
# ---------------------------------------------------------------------------


class SolveBudgetExceeded(SolverError):
    """No solution within the iteration budget. Retryable."""

    code = "VRF_SOLVE_BUDGET_EXCEEDED"
    retryable = True

    def __init__(self, *, seed: int, iterations: int, message: str = "no solution within budget") -> None:
        super().__init__(message, details={"seed": hex(seed), "iterations": int(iterations)})


class SolveCancelled(SolverError):
    code = "VRF_SOLVE_CANCELLED"
    retryable = True

    def __init__(self, *, seed: int, iterations: int, message: str = "solve cancelled") -> None:
        super().__init__(message, details={"seed": hex(seed), "iterations": int(iterations)})


class OutOfGas(VRFError):
    code = "VRF_OUT_OF_GAS"

    def __init__(self, *, needed: int, used: int, limit: int, message: str = "out of gas") -> None:
        super().__init__(message, details={"needed": int(needed), "used": int(used), "limit": int(limit)})


__all__ = [
    "VRFError",
    "ConfigurationError",
    "SequencingError",
    "AuthorizationError",
    "EconomicError",
    "ProofError",
    "SolverError",
    "InvalidDifficulty",
    "ZeroFunding",
    "ZeroWithdrawal",
    "InvalidConsumer",
    "OutOfOrderFulfillment",
    "AlreadyFulfilled",
    "RequestNotFound",
    "NotRegistered",
    "Unauthorized",
    "TransferDuringCallback",
    "OnlyCoordinatorCanFulfill",
    "DuplicateFulfillment",
    "InsufficientBalance",
    "PaymentTransferFailed",
    "InvalidProof",
    "DifficultyNotMet",
    "SolveBudgetExceeded",
    "SolveCancelled",
    "OutOfGas",
]
