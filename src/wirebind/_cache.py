from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Generic, TypeVar


if TYPE_CHECKING:
    from collections.abc import Callable

V = TypeVar("V")


class MemoCache(Generic[V]):
    """Concurrent memoizing map from a class to a value computed from it.

    Values are computed outside the lock, so two threads may build the same
    value; the first one stored wins and is what every caller sees. Failed
    computations are not cached. Entries live as long as the cache.
    """

    def __init__(self, create: Callable[[type], V]) -> None:
        self._create = create
        self._values: dict[type, V] = {}
        self._lock = threading.Lock()

    def get(self, key: type) -> V:
        with self._lock:
            value = self._values.get(key)
        if value is not None:
            return value

        value = self._create(key)
        with self._lock:
            return self._values.setdefault(key, value)

    def __contains__(self, key: type) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
