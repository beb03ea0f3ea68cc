from __future__ import annotations

import threading
from typing import Sequence

__all__ = ["AtomicCounters"]


class AtomicCounters:
    """Named running sums that worker threads add into under one lock."""

    def __init__(self, names: Sequence[str]):
        self.names = tuple(names)
        self._sums = [0.0] * len(self.names)
        self._count = 0
        self._lock = threading.Lock()

    def add(self, values: Sequence[float]) -> None:
        if len(values) != len(self.names):
            raise ValueError(f"expected {len(self.names)} values, got {len(values)}")
        with self._lock:
            for i, value in enumerate(values):
                self._sums[i] += value
            self._count += 1

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def totals(self) -> dict[str, float]:
        with self._lock:
            return dict(zip(self.names, self._sums))

    def normalized(self, divisor: int) -> dict[str, float]:
        """Sums divided by ``divisor``; all zeros when there is nothing to divide by."""
        totals = self.totals()
        if divisor <= 0:
            return {name: 0.0 for name in totals}
        return {name: value / divisor for name, value in totals.items()}
