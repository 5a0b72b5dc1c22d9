"""
native_vrf constants.

This module centralizes:
- Genesis and counter defaults for the randomness ledger
- Economic defaults (premium, callback gas limit)
- The gas schedule charged while fulfilling a request
- Store bucket names

Networks override operational knobs via `native_vrf.config`, but code that
needs stable defaults can import from here.
"""

from __future__ import annotations

# -----------------------------
# Ledger
# -----------------------------
# Request ids start at 1; random_results[0] holds the genesis seed.
FIRST_REQUEST_ID: int = 1
GENESIS_REQUEST_ID: int = 0
DEFAULT_GENESIS_SEED: int = 42
DEFAULT_DIFFICULTY: int = 1_000

UINT256_MAX: int = (1 << 256) - 1
# Ids are stored as u64 keys; larger ids are never allocated.
MAX_REQUEST_ID: int = (1 << 64) - 1
WORD_BYTES: int = 32

# The zero address marks an absent consumer in request configs.
ZERO_ADDRESS: str = "0x" + "00" * 20

# -----------------------------
# Economics
# -----------------------------
DEFAULT_FIXED_PREMIUM: int = 10_000
DEFAULT_CALLBACK_GAS_LIMIT: int = 500_000

# -----------------------------
# Gas schedule (charged during fulfill_randomness)
# -----------------------------
# Loosely modelled on EVM costs so payments have familiar magnitudes.
GAS_FULFILL_BASE: int = 21_000       # entry + calldata
GAS_SIGNATURE_RECOVER: int = 3_000   # ecrecover
GAS_KECCAK_WORD: int = 36            # keccak256 per 32-byte word (approx.)
GAS_STORE_WORD: int = 20_000         # fresh storage slot
GAS_UPDATE_WORD: int = 5_000         # overwrite storage slot
GAS_EVENT: int = 1_875               # log with topics
GAS_CALLBACK_BASE: int = 700         # external call stipend
GAS_TRANSFER: int = 2_300            # value transfer

# -----------------------------
# Worker
# -----------------------------
DEFAULT_POLL_DELAY_S: float = 1.0
DEFAULT_SOLVE_MAX_ITERATIONS: int = 1_000_000
DEFAULT_SOLVE_TIMEOUT_S: float = 120.0

__all__ = [
    "FIRST_REQUEST_ID",
    "GENESIS_REQUEST_ID",
    "DEFAULT_GENESIS_SEED",
    "DEFAULT_DIFFICULTY",
    "UINT256_MAX",
    "MAX_REQUEST_ID",
    "WORD_BYTES",
    "ZERO_ADDRESS",
    "DEFAULT_FIXED_PREMIUM",
    "DEFAULT_CALLBACK_GAS_LIMIT",
    "GAS_FULFILL_BASE",
    "GAS_SIGNATURE_RECOVER",
    "GAS_KECCAK_WORD",
    "GAS_STORE_WORD",
    "GAS_UPDATE_WORD",
    "GAS_EVENT",
    "GAS_CALLBACK_BASE",
    "GAS_TRANSFER",
    "DEFAULT_POLL_DELAY_S",
    "DEFAULT_SOLVE_MAX_ITERATIONS",
    "DEFAULT_SOLVE_TIMEOUT_S",
]
