"""
native_vrf.utils
================

Small helpers shared across the package: uint256/keccak encodings used by
the puzzle and the ledger.
"""

from __future__ import annotations

from .hash import (
    derive_random_value,
    from_hex,
    keccak256,
    message_hash,
    signature_to_uint,
    to_hex,
    u256,
)

__all__ = [
    "keccak256",
    "u256",
    "message_hash",
    "signature_to_uint",
    "derive_random_value",
    "to_hex",
    "from_hex",
]
