from __future__ import annotations

from concurrent.futures import Future
import threading
from typing import Any, Callable, Hashable

from loguru import logger

__all__ = ["PhenotypeCache"]


class PhenotypeCache:
    """Write-once, read-many phenotype store shared by worker threads.

    ``get_or_insert`` computes each key at most once: concurrent first
    encounters of the same key wait for the thread already decoding it.
    A compute that raises is not cached; the error reaches every waiter and
    the next call retries.
    """

    def __init__(self) -> None:
        self._values: dict[Hashable, Any] = {}
        self._pending: dict[Hashable, Future] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._values

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            return self._values.get(key)

    def get_or_insert(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._values:
                self.hits += 1
                return self._values[key]
            pending = self._pending.get(key)
            if pending is None:
                pending = Future()
                self._pending[key] = pending
                owner = True
                self.misses += 1
            else:
                owner = False
                self.hits += 1

        if not owner:
            return pending.result()

        try:
            value = compute()
        except BaseException as e:
            with self._lock:
                del self._pending[key]
            pending.set_exception(e)
            raise

        with self._lock:
            self._values[key] = value
            del self._pending[key]
        pending.set_result(value)
        logger.debug("[PhenotypeCache] stored {}", key)
        return value

    def evict(self, key: Hashable) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
