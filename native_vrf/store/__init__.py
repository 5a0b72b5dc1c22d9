"""
native_vrf.store
================

Storage protocol for the authoritative VRF state (counters, results, request
configs, consumer accounts, audit events).

Backends are pluggable (in-memory, SQLite). Higher layers code against the
tiny byte-oriented `KeyValue` protocol below; the only extra requirement over
a plain KV is a *nestable* `transaction()` context manager: on an exception
every write made inside the block is undone, which is what makes a failed
payment roll back a whole fulfillment.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Iterable, Optional, Protocol, Tuple


class KeyValue(Protocol):
    """Minimal byte-oriented KV interface with atomic, nestable transactions."""

    def get(self, key: bytes) -> Optional[bytes]:
        """Return value for key, or None if missing."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or replace key with value."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (no-op if absent)."""
        ...

    def has(self, key: bytes) -> bool:
        ...

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose keys start with prefix, ascending by key."""
        ...

    def transaction(self) -> AbstractContextManager[None]:
        """All-or-nothing block; nested blocks roll back independently."""
        ...

    def close(self) -> None:
        ...


def open_store(uri: str) -> KeyValue:
    """
    Open a store from a URI:

      - ``memory://``            in-process dict (tests, devnets)
      - ``sqlite:///path/to.db`` SQLite file
    """
    if uri.startswith("memory://"):
        from .memory import MemoryKeyValue

        return MemoryKeyValue()
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteKeyValue

        # sqlite:///abs/path -> /abs/path ; sqlite://./rel.db -> ./rel.db
        path = uri[len("sqlite://"):]
        return SQLiteKeyValue(path)
    raise ValueError(f"unsupported store URI: {uri!r}")


__all__ = ["KeyValue", "open_store"]
