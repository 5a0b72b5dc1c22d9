"""
In-memory KeyValue backend.

Transactions are implemented with a stack of dict snapshots: entering a block
pushes a copy of the current contents, an exception restores it. The state
held by the coordinator is small (counters, configs, balances), so copying is
cheap enough for tests and devnets.
"""

from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Dict, Generator, Iterable, List, Optional, Tuple


class MemoryKeyValue:
    def __init__(self) -> None:
        self._d: Dict[bytes, bytes] = {}
        self._snapshots: List[Dict[bytes, bytes]] = []
        self._lock = RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        return self._d.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        with self._lock:
            self._d[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._d.pop(bytes(key), None)

    def has(self, key: bytes) -> bool:
        return bytes(key) in self._d

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        with self._lock:
            items = sorted((k, v) for k, v in self._d.items() if k.startswith(prefix))
        return iter(items)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self._lock:
            self._snapshots.append(dict(self._d))
            try:
                yield
            except BaseException:
                self._d = self._snapshots.pop()
                raise
            else:
                self._snapshots.pop()

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._d)


__all__ = ["MemoryKeyValue"]
