"""
Logical buckets over a raw byte-oriented KeyValue backend.

Buckets
-------
- RESULTS:   per-request random results (uint256, 32 bytes big-endian)
- REQUESTS:  per-request configs (stable JSON)
- CONSUMERS: per-address consumer accounts (stable JSON)
- EVENTS:    append-only audit log, keyed by sequence number (stable JSON)
- META:      singleton integers and strings (counters, parameters, owner)

Integer keys are encoded as 8-byte big-endian so prefix iteration returns
them in numeric order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional

from . import KeyValue
from ..constants import WORD_BYTES

# --- Bucket prefix constants (single-byte, domain-separated) -----------------

RESULTS_PREFIX = b"\x01"
REQUESTS_PREFIX = b"\x02"
CONSUMERS_PREFIX = b"\x03"
EVENTS_PREFIX = b"\x04"
META_PREFIX = b"\x05"

# --- META keys ---------------------------------------------------------------

META_CURRENT_REQUEST_ID = "current_request_id"
META_LATEST_FULFILL_ID = "latest_fulfill_id"
META_DIFFICULTY = "difficulty"
META_FIXED_PREMIUM = "fixed_premium"
META_DEFAULT_CALLBACK_GAS = "default_callback_gas_limit"
META_EVENT_SEQ = "event_seq"
META_OWNER = "owner"


def _u64_be(n: int) -> bytes:
    if n < 0 or n > 0xFFFFFFFFFFFFFFFF:
        raise ValueError("id out of range for u64")
    return n.to_bytes(8, "big")


def _dumps_stable(obj: Mapping[str, Any]) -> bytes:
    """Deterministic JSON encoding (stable separators & sorted keys)."""
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _loads_stable(data: bytes) -> Dict[str, Any]:
    return json.loads(data.decode("utf-8"))


@dataclass(frozen=True)
class Buckets:
    """Namespaced view over a byte KV store used by the ledger and coordinator."""

    kv: KeyValue

    # --- META ----------------------------------------------------------------

    def get_meta_int(self, name: str, default: Optional[int] = None) -> Optional[int]:
        raw = self.kv.get(META_PREFIX + name.encode("utf-8"))
        return default if raw is None else int.from_bytes(raw, "big")

    def put_meta_int(self, name: str, value: int) -> None:
        if value < 0:
            raise ValueError(f"{name} must be non-negative")
        length = max(1, (value.bit_length() + 7) // 8)
        self.kv.put(META_PREFIX + name.encode("utf-8"), value.to_bytes(length, "big"))

    def get_meta_str(self, name: str) -> Optional[str]:
        raw = self.kv.get(META_PREFIX + name.encode("utf-8"))
        return None if raw is None else raw.decode("utf-8")

    def put_meta_str(self, name: str, value: str) -> None:
        self.kv.put(META_PREFIX + name.encode("utf-8"), value.encode("utf-8"))

    # --- Results -------------------------------------------------------------

    def get_result(self, request_id: int) -> Optional[int]:
        raw = self.kv.get(RESULTS_PREFIX + _u64_be(request_id))
        return None if raw is None else int.from_bytes(raw, "big")

    def put_result(self, request_id: int, value: int) -> None:
        self.kv.put(RESULTS_PREFIX + _u64_be(request_id), value.to_bytes(WORD_BYTES, "big"))

    # --- Requests ------------------------------------------------------------

    def get_request(self, request_id: int) -> Optional[Dict[str, Any]]:
        raw = self.kv.get(REQUESTS_PREFIX + _u64_be(request_id))
        return None if raw is None else _loads_stable(raw)

    def put_request(self, request_id: int, record: Mapping[str, Any]) -> None:
        self.kv.put(REQUESTS_PREFIX + _u64_be(request_id), _dumps_stable(record))

    # --- Consumers -----------------------------------------------------------

    def get_consumer(self, address: str) -> Optional[Dict[str, Any]]:
        raw = self.kv.get(CONSUMERS_PREFIX + address.encode("utf-8"))
        return None if raw is None else _loads_stable(raw)

    def put_consumer(self, address: str, record: Mapping[str, Any]) -> None:
        self.kv.put(CONSUMERS_PREFIX + address.encode("utf-8"), _dumps_stable(record))

    # --- Events --------------------------------------------------------------

    def append_event(self, record: Mapping[str, Any]) -> int:
        """Persist an event and return its sequence number (1-based)."""
        seq = (self.get_meta_int(META_EVENT_SEQ, 0) or 0) + 1
        self.kv.put(EVENTS_PREFIX + _u64_be(seq), _dumps_stable({**record, "seq": seq}))
        self.put_meta_int(META_EVENT_SEQ, seq)
        return seq

    def iter_events(self, since: int = 0) -> Iterator[Dict[str, Any]]:
        """Yield events with seq > since, oldest first."""
        for key, raw in self.kv.iter_prefix(EVENTS_PREFIX):
            seq = int.from_bytes(key[len(EVENTS_PREFIX):], "big")
            if seq > since:
                yield _loads_stable(raw)


__all__ = [
    "Buckets",
    "META_CURRENT_REQUEST_ID",
    "META_LATEST_FULFILL_ID",
    "META_DIFFICULTY",
    "META_FIXED_PREMIUM",
    "META_DEFAULT_CALLBACK_GAS",
    "META_EVENT_SEQ",
    "META_OWNER",
]
