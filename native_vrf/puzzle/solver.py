"""
Signature puzzle solver.

For a seed `s` (the previous random value) the solver walks inputs
x = start, start+1, ... and for each one:

  1. message = keccak256(uint256(s) || uint256(x))
  2. signature = sign(message)            (fulfiller's private key)
  3. value = uint256(signature[:32])
  4. accept x iff value % difficulty == 0

Expected work is `difficulty` signatures. The search has no natural upper
bound, so every call runs against an iteration budget and an optional
`threading.Event` that the caller can set to cancel; both surface as
retryable :class:`~native_vrf.errors.SolverError` subclasses rather than a
hang.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from ..constants import DEFAULT_SOLVE_MAX_ITERATIONS, WORD_BYTES
from ..crypto.signer import Signer, normalize_address, recover_signer
from ..errors import InvalidDifficulty, SolveBudgetExceeded, SolveCancelled
from ..utils.hash import message_hash, signature_to_uint

log = logging.getLogger(__name__)

# How often (in iterations) the cancel flag is polled.
_CANCEL_POLL_EVERY = 64


def check_difficulty(difficulty: int) -> int:
    if not isinstance(difficulty, int) or isinstance(difficulty, bool) or difficulty <= 0:
        raise InvalidDifficulty(difficulty)
    return difficulty


def meets_difficulty(signature: bytes, difficulty: int) -> bool:
    return signature_to_uint(signature) % check_difficulty(difficulty) == 0


def verify_solution(
    seed: int,
    input_value: int,
    signature: bytes,
    *,
    difficulty: int,
    signer: Optional[str] = None,
) -> bool:
    """
    Check a candidate the way the ledger does: the signature must recover
    (to `signer`, when given) and its value must meet `difficulty`.
    """
    sig = bytes(signature)
    recovered = recover_signer(message_hash(seed, input_value), sig)
    if recovered is None:
        return False
    if signer is not None and normalize_address(signer) != recovered:
        return False
    return len(sig) >= WORD_BYTES and meets_difficulty(sig, difficulty)


@dataclass(frozen=True, slots=True)
class Solution:
    seed: int
    input: int
    signature: bytes
    value: int
    iterations: int
    elapsed_s: float = 0.0

    def to_dict(self) -> dict:
        return {
            "seed": hex(self.seed),
            "input": self.input,
            "signature": "0x" + self.signature.hex(),
            "value": hex(self.value),
            "iterations": self.iterations,
            "elapsed_s": round(self.elapsed_s, 6),
        }


class PuzzleSolver:
    """
    Search for puzzle solutions with a fixed signer and difficulty.

        solver = PuzzleSolver(signer, difficulty=4)
        sol = solver.solve(seed=42)
        coordinator.fulfill_randomness(signer.address, rid, sol.input, sol.signature)
    """

    def __init__(
        self,
        signer: Signer,
        *,
        difficulty: int,
        max_iterations: Optional[int] = DEFAULT_SOLVE_MAX_ITERATIONS,
    ) -> None:
        self._signer = signer
        self._difficulty = check_difficulty(difficulty)
        if max_iterations is not None and max_iterations <= 0:
            raise ValueError("max_iterations must be > 0 or None")
        self._max_iterations = max_iterations

    @property
    def difficulty(self) -> int:
        return self._difficulty

    @property
    def signer(self) -> Signer:
        return self._signer

    def attempt(self, seed: int, input_value: int) -> tuple[bytes, int]:
        """Sign one candidate; returns (signature, value)."""
        sig = self._signer.sign(message_hash(seed, input_value))
        return sig, signature_to_uint(sig)

    def verify(self, seed: int, input_value: int, signature: bytes) -> bool:
        """True if `signature` is this signer's solution for (seed, input)."""
        return verify_solution(
            seed, input_value, signature, difficulty=self._difficulty, signer=self._signer.address
        )


    def solve(
        self,
        seed: int,
        *,
        start: int = 0,
        max_iterations: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Solution:
        budget = max_iterations if max_iterations is not None else self._max_iterations
        t0 = time.perf_counter()
        tried = 0
        candidate = start
        while budget is None or tried < budget:
            if cancel is not None and tried % _CANCEL_POLL_EVERY == 0 and cancel.is_set():
                raise SolveCancelled(seed=seed, iterations=tried)
            sig, value = self.attempt(seed, candidate)
            tried += 1
            if value % self._difficulty == 0:
                elapsed = time.perf_counter() - t0
                log.debug(
                    "puzzle solved seed=%s input=%d iterations=%d elapsed=%.3fs",
                    hex(seed), candidate, tried, elapsed,
                )
                return Solution(
                    seed=seed,
                    input=candidate,
                    signature=sig,
                    value=value,
                    iterations=tried,
                    elapsed_s=elapsed,
                )
            candidate += 1
        raise SolveBudgetExceeded(seed=seed, iterations=tried)


__all__ = ["PuzzleSolver", "Solution", "check_difficulty", "meets_difficulty", "verify_solution"]
