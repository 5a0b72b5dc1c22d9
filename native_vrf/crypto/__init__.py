"""
native_vrf.crypto
=================

Signing capability used by fulfillers and signature recovery used by the
ledger. See :mod:`native_vrf.crypto.signer`.
"""

from __future__ import annotations

from .signer import LocalSigner, Signer, normalize_address, recover_signer

__all__ = ["Signer", "LocalSigner", "recover_signer", "normalize_address"]
