"""
store.py - Key-value storage for the vending state machine

Classes:
- MemoryStore: ordered in-memory KeyValueStore (reference implementation for
  tests and embedding hosts; durable engines implement the same protocol)
- StagedStore: write-buffering overlay used by one operation

A StagedStore never writes to its base. Transition functions read and write
through it; the machine commits StagedStore.changes() only when every check
has passed, which makes each operation all-or-nothing.
"""

from __future__ import annotations
from bisect import bisect_right, insort
from typing import Dict, Iterator, List, Optional, Tuple, Callable, Any

from .core import StoreView, StateChange, StorageError, VendingError


def _require_bytes(value: Any, what: str) -> None:
    if not isinstance(value, bytes):
        raise TypeError(f"{what} must be bytes, got {type(value).__name__}")


class MemoryStore:
    """
    Ordered in-memory key-value store.

    Keys are kept in a sorted list beside the value dict so that scan() is a
    binary search followed by a walk. scan() tolerates writes between yields:
    it re-locates its position after each step, so no key is yielded twice.

    Example:
        store = MemoryStore()
        store.put(b"catalog:Americano", b'{"price":2,"stock":3}')
        for key, value in store.scan(b"catalog:"):
            ...
    """

    def __init__(self, data: Optional[Dict[bytes, bytes]] = None):
        self._data: Dict[bytes, bytes] = {}
        self._keys: List[bytes] = []
        for key, value in (data or {}).items():
            self.put(key, value)

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(key)

    def has(self, key: bytes) -> bool:
        return key in self._data

    def put(self, key: bytes, value: bytes) -> None:
        _require_bytes(key, "key")
        _require_bytes(value, "value")
        if key not in self._data:
            insort(self._keys, key)
        self._data[key] = value

    def delete(self, key: bytes) -> None:
        if key not in self._data:
            return
        del self._data[key]
        idx = bisect_right(self._keys, key) - 1
        del self._keys[idx]

    def scan(self, start: bytes = b"") -> Iterator[Tuple[bytes, bytes]]:
        """Yield (key, value) with key > start in ascending byte order."""
        cursor = start
        while True:
            idx = bisect_right(self._keys, cursor)
            if idx >= len(self._keys):
                return
            cursor = self._keys[idx]
            yield cursor, self._data[cursor]

    def snapshot(self) -> MemoryStore:
        """
        Return an independent point-in-time copy.

        Reads against the snapshot never observe writes made to this store
        afterwards, so queries can run beside a writer.
        """
        copied = MemoryStore.__new__(MemoryStore)
        copied._data = dict(self._data)
        copied._keys = list(self._keys)
        return copied

    def items(self) -> List[Tuple[bytes, bytes]]:
        """All (key, value) pairs in key order."""
        return [(key, self._data[key]) for key in self._keys]

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"MemoryStore({len(self._keys)} keys)"


class StagedStore:
    """
    Overlay that buffers the writes of one operation on top of a read-only base.

    Transitions only read and write single keys, so the overlay offers
    get/has/put and no scan. Reads see buffered writes first. Every base read
    failure is surfaced as StorageError. changes() reports the buffered writes
    with the values they replace, in the order the keys were first written.
    """

    def __init__(self, base: StoreView):
        self._base = base
        self._writes: Dict[bytes, bytes] = {}
        self._old: Dict[bytes, Optional[bytes]] = {}

    def _read(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except VendingError:
            raise
        except Exception as e:
            raise StorageError(f"{type(e).__name__}: {e}") from e

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self._writes:
            return self._writes[key]
        return self._read(self._base.get, key)

    def has(self, key: bytes) -> bool:
        if key in self._writes:
            return True
        return self._read(self._base.has, key)

    def put(self, key: bytes, value: bytes) -> None:
        _require_bytes(key, "key")
        _require_bytes(value, "value")
        if key not in self._writes:
            self._old[key] = self._read(self._base.get, key)
        self._writes[key] = value

    def changes(self) -> Tuple[StateChange, ...]:
        """Buffered writes that differ from the base, in first-write order."""
        return tuple(
            StateChange(key=key, old_value=self._old[key], new_value=value)
            for key, value in self._writes.items()
            if self._old[key] != value
        )

    def __repr__(self) -> str:
        return f"StagedStore({len(self._writes)} buffered writes)"
