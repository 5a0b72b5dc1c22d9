"""
Fulfiller signing keys
======================

A small facade over `eth_account` providing the signing capability the
puzzle needs:

- deterministic: the same key signs the same message to the same bytes
  (RFC 6979 nonces), so a solution is reproducible by its owner;
- verifiable: anyone can recover the signer's address from (message, sig);
- unpredictable: nobody without the private key can guess the signature,
  hence the puzzle value, ahead of time.

Messages are signed as EIP-191 personal messages over the raw 32-byte hash,
matching `signer.signMessage(arrayify(hash))` in ethers-based tooling.

Security notes
--------------
Private keys are held in memory only. Load them from the environment or a
secrets manager; never commit them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import is_address, to_checksum_address

logger = logging.getLogger(__name__)

ENV_PRIVATE_KEY = "NATIVE_VRF_PRIVATE_KEY"


@runtime_checkable
class Signer(Protocol):
    """Signing capability held by a fulfiller."""

    @property
    def address(self) -> str: ...

    def sign(self, message: bytes) -> bytes: ...


def normalize_address(addr: str) -> str:
    """Checksum-normalize an address; non-address identities pass through."""
    if isinstance(addr, str) and is_address(addr):
        return to_checksum_address(addr)
    return addr


def recover_signer(message: bytes, signature: bytes) -> Optional[str]:
    """
    Recover the checksum address that produced `signature` over `message`.

    Returns None when the signature is malformed or recovery fails.
    """
    try:
        return Account.recover_message(encode_defunct(primitive=bytes(message)), signature=bytes(signature))
    except Exception as e:  # eth_keys raises a zoo of types for bad input
        logger.debug("signature recovery failed: %s", e)
        return None


@dataclass
class LocalSigner:
    """In-process secp256k1 key."""

    account: LocalAccount = field(repr=False)

    @classmethod
    def from_key(cls, private_key: str | bytes) -> "LocalSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def generate(cls) -> "LocalSigner":
        return cls(Account.create())

    @classmethod
    def from_env(cls, var: str = ENV_PRIVATE_KEY) -> "LocalSigner":
        key = os.getenv(var)
        if not key:
            raise SystemExit(f"Missing fulfiller key: set {var}")
        return cls.from_key(key)

    @property
    def address(self) -> str:
        return self.account.address

    def sign(self, message: bytes) -> bytes:
        """Sign a 32-byte message hash; returns 65 bytes r || s || v."""
        signed = self.account.sign_message(encode_defunct(primitive=bytes(message)))
        return bytes(signed.signature)


__all__ = ["Signer", "LocalSigner", "recover_signer", "normalize_address", "ENV_PRIVATE_KEY"]
