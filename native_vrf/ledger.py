"""
Randomness ledger: the authoritative, append-only chain of random results.

State (persisted through `native_vrf.store.kv.Buckets`):
  current_request_id — next id to hand out (starts at 1)
  latest_fulfill_id  — last fulfilled id (starts at 0)
  random_results[id] — result for `id`; random_results[0] is the genesis seed
  difficulty         — puzzle modulus, > 0

Invariants
----------
* `allocate()` hands out 1, 2, 3, ... with no gaps or repeats.
* `fulfill(id)` only succeeds for `id == latest_fulfill_id + 1`, so the
  chain never has holes and every result is a function of its predecessor:

      message       = keccak256(uint256(random_results[id-1]) || uint256(input))
      random_value  = keccak256(message || signature)

* Every mutation runs under the ledger lock and inside a store transaction;
  a rejected call writes nothing.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from threading import RLock
from typing import FrozenSet, Iterable, Optional, Protocol

from .constants import (
    DEFAULT_DIFFICULTY,
    DEFAULT_GENESIS_SEED,
    FIRST_REQUEST_ID,
    GAS_KECCAK_WORD,
    GAS_SIGNATURE_RECOVER,
    GAS_STORE_WORD,
    GAS_UPDATE_WORD,
    GENESIS_REQUEST_ID,
    MAX_REQUEST_ID,
    UINT256_MAX,
    WORD_BYTES,
)
from .crypto.signer import normalize_address, recover_signer
from .errors import (
    AlreadyFulfilled,
    DifficultyNotMet,
    InvalidProof,
    OutOfOrderFulfillment,
    RequestNotFound,
)
from .gas import GasMeter
from .puzzle.solver import check_difficulty
from .store import KeyValue
from .store.kv import (
    META_CURRENT_REQUEST_ID,
    META_DIFFICULTY,
    META_LATEST_FULFILL_ID,
    Buckets,
)
from .utils.hash import derive_random_value, message_hash

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------
# Fulfiller key policies
# --------------------------------------------------------------------------


class FulfillerPolicy(Protocol):
    def allows(self, recovered: str, fulfiller: str) -> bool: ...


def _same_address(a: str, b: str) -> bool:
    return hmac.compare_digest(normalize_address(a).encode(), normalize_address(b).encode())


class SelfSignedPolicy:
    """The key that signed the puzzle must belong to the submitter."""

    def allows(self, recovered: str, fulfiller: str) -> bool:
        return _same_address(recovered, fulfiller)


class AllowlistPolicy:
    """Self-signed, and the signer must be one of a fixed set of fulfillers."""

    def __init__(self, addresses: Iterable[str]) -> None:
        self._allowed: FrozenSet[str] = frozenset(normalize_address(a) for a in addresses)

    def allows(self, recovered: str, fulfiller: str) -> bool:
        return _same_address(recovered, fulfiller) and normalize_address(recovered) in self._allowed


# --------------------------------------------------------------------------
# Ledger
# --------------------------------------------------------------------------


@dataclass(frozen=True)
class VerifiedFulfillment:
    request_id: int
    message: bytes
    signer: str
    random_value: int


class RandomnessLedger:
    def __init__(
        self,
        kv: KeyValue,
        *,
        genesis_seed: int = DEFAULT_GENESIS_SEED,
        difficulty: int = DEFAULT_DIFFICULTY,
        policy: Optional[FulfillerPolicy] = None,
        lock: Optional[RLock] = None,
    ) -> None:
        self.kv = kv
        self.buckets = Buckets(kv)
        self.policy: FulfillerPolicy = policy or SelfSignedPolicy()
        self.lock = lock or RLock()
        if not (0 <= genesis_seed <= UINT256_MAX):
            raise ValueError("genesis_seed must be a uint256")
        check_difficulty(difficulty)
        self._init_state(genesis_seed, difficulty)

    def _init_state(self, genesis_seed: int, difficulty: int) -> None:
        with self.lock, self.kv.transaction():
            if self.buckets.get_meta_int(META_CURRENT_REQUEST_ID) is not None:
                # Existing store: genesis and counters are authoritative.
                logger.debug(
                    "ledger loaded current=%d latest=%d",
                    self.current_request_id, self.latest_fulfill_id,
                )
                return
            self.buckets.put_result(GENESIS_REQUEST_ID, genesis_seed)
            self.buckets.put_meta_int(META_CURRENT_REQUEST_ID, FIRST_REQUEST_ID)
            self.buckets.put_meta_int(META_LATEST_FULFILL_ID, GENESIS_REQUEST_ID)
            self.buckets.put_meta_int(META_DIFFICULTY, difficulty)
            logger.info("ledger initialised genesis=%s difficulty=%d", hex(genesis_seed), difficulty)

    # ---- views --------------------------------------------------------------

    @property
    def current_request_id(self) -> int:
        return int(self.buckets.get_meta_int(META_CURRENT_REQUEST_ID, FIRST_REQUEST_ID))

    @property
    def latest_fulfill_id(self) -> int:
        return int(self.buckets.get_meta_int(META_LATEST_FULFILL_ID, GENESIS_REQUEST_ID))

    @property
    def difficulty(self) -> int:
        return int(self.buckets.get_meta_int(META_DIFFICULTY, DEFAULT_DIFFICULTY))

    def random_result(self, request_id: int) -> int:
        """Result for `request_id`, or 0 while it is unfulfilled."""
        if not GENESIS_REQUEST_ID <= request_id <= MAX_REQUEST_ID:
            return 0
        value = self.buckets.get_result(request_id)
        return 0 if value is None else value

    def is_fulfilled(self, request_id: int) -> bool:
        return GENESIS_REQUEST_ID < request_id <= self.latest_fulfill_id

    def pending(self) -> range:
        """Allocated but unfulfilled ids, in fulfillment order."""
        return range(self.latest_fulfill_id + 1, self.current_request_id)

    def message_for(self, request_id: int, input_value: int) -> bytes:
        return message_hash(self.random_result(request_id - 1), input_value)

    # ---- mutations ----------------------------------------------------------

    def allocate(self) -> int:
        with self.lock, self.kv.transaction():
            rid = self.current_request_id
            self.buckets.put_meta_int(META_CURRENT_REQUEST_ID, rid + 1)
        return rid

    def set_difficulty(self, difficulty: int) -> None:
        check_difficulty(difficulty)
        with self.lock, self.kv.transaction():
            self.buckets.put_meta_int(META_DIFFICULTY, difficulty)

    def preview(
        self,
        request_id: int,
        input_value: int,
        signature: bytes,
        *,
        fulfiller: str,
        gas: Optional[GasMeter] = None,
    ) -> VerifiedFulfillment:
        """Run every fulfillment check without writing anything."""
        with self.lock:
            latest = self.latest_fulfill_id
            if GENESIS_REQUEST_ID < request_id <= latest:
                raise AlreadyFulfilled(request_id=request_id)
            if request_id != latest + 1:
                raise OutOfOrderFulfillment(request_id=request_id, expected_id=latest + 1)
            if request_id >= self.current_request_id:
                raise RequestNotFound(request_id=request_id)

            if gas is not None:
                gas.consume(GAS_SIGNATURE_RECOVER + 4 * GAS_KECCAK_WORD)

            sig = bytes(signature)
            try:
                message = self.message_for(request_id, input_value)
            except (TypeError, ValueError):
                raise InvalidProof(request_id=request_id) from None

            # Evaluate both checks before raising either one.
            recovered = recover_signer(message, sig)
            proof_ok = recovered is not None and self.policy.allows(recovered, fulfiller)
            difficulty = self.difficulty
            value_ok = len(sig) >= WORD_BYTES and int.from_bytes(sig[:WORD_BYTES], "big") % difficulty == 0
            if not proof_ok:
                raise InvalidProof(request_id=request_id)
            if not value_ok:
                raise DifficultyNotMet(request_id=request_id, difficulty=difficulty)

            return VerifiedFulfillment(
                request_id=request_id,
                message=message,
                signer=recovered,  # type: ignore[arg-type]
                random_value=derive_random_value(message, sig),
            )

    def fulfill(
        self,
        request_id: int,
        input_value: int,
        signature: bytes,
        *,
        fulfiller: str,
        gas: Optional[GasMeter] = None,
    ) -> int:
        """Verify and record the result for `request_id`; returns the random value."""
        with self.lock, self.kv.transaction():
            verified = self.preview(request_id, input_value, signature, fulfiller=fulfiller, gas=gas)
            if gas is not None:
                gas.consume(GAS_STORE_WORD + GAS_UPDATE_WORD)
            self.buckets.put_result(request_id, verified.random_value)
            self.buckets.put_meta_int(META_LATEST_FULFILL_ID, request_id)
        logger.debug("ledger fulfilled id=%d signer=%s", request_id, verified.signer)
        return verified.random_value


__all__ = [
    "RandomnessLedger",
    "VerifiedFulfillment",
    "FulfillerPolicy",
    "SelfSignedPolicy",
    "AllowlistPolicy",
]
