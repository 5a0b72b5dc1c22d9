"""
native_vrf.utils.hash
=====================

Keccak-256 helpers for the signature puzzle.

Encodings follow Solidity's packed ABI for uint256 so that values produced
here match what an on-chain verifier would compute:

- :func:`u256`               32-byte big-endian encoding of an unsigned int.
- :func:`message_hash`       keccak256(u256(a) || u256(b) || ...).
- :func:`signature_to_uint`  first 32 bytes of a signature as an unsigned int
                             (the `r` component for 65-byte ECDSA signatures).
- :func:`derive_random_value` keccak256(message || signature) as uint256.
"""

from __future__ import annotations

from typing import Union

from eth_utils import keccak

from ..constants import UINT256_MAX, WORD_BYTES

BytesLike = Union[bytes, bytearray, memoryview]


def keccak256(data: BytesLike) -> bytes:
    """Return keccak256(data)."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("keccak256 expects a bytes-like object")
    return keccak(bytes(data))


def u256(value: int) -> bytes:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError("uint256 value must be int")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"value out of uint256 range: {value}")
    return value.to_bytes(WORD_BYTES, "big", signed=False)


def message_hash(*values: int) -> bytes:
    """keccak256 over the packed uint256 encoding of `values`."""
    return keccak256(b"".join(u256(v) for v in values))


def signature_to_uint(signature: BytesLike) -> int:
    """Interpret the first 32 bytes of `signature` as a big-endian uint256."""
    sig = bytes(signature)
    if len(sig) < WORD_BYTES:
        raise ValueError(f"signature too short: {len(sig)} bytes")
    return int.from_bytes(sig[:WORD_BYTES], "big")


def derive_random_value(message: BytesLike, signature: BytesLike) -> int:
    """Next value of the randomness chain for an accepted (message, signature)."""
    return int.from_bytes(keccak256(bytes(message) + bytes(signature)), "big")


def to_hex(b: BytesLike) -> str:
    return "0x" + bytes(b).hex()


def from_hex(s: str) -> bytes:
    if s.startswith(("0x", "0X")):
        s = s[2:]
    if len(s) % 2 == 1:
        s = "0" + s
    return bytes.fromhex(s)


__all__ = [
    "keccak256",
    "u256",
    "message_hash",
    "signature_to_uint",
    "derive_random_value",
    "to_hex",
    "from_hex",
]
