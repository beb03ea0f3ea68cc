from __future__ import annotations

from itertools import islice
from typing import Iterable, Iterator, TypeVar

from mcceval.exceptions import ConfigurationError

__all__ = ["chunk"]

T = TypeVar("T")


def chunk(ids: Iterable[T], size: int) -> Iterator[list[T]]:
    """Split ``ids`` into consecutive lists of at most ``size`` items.

    Chunks are yielded lazily so only one chunk's phenotypes need to be live
    at a time. An invalid ``size`` fails here, before any iteration.
    """
    if size <= 0:
        raise ConfigurationError(f"chunk size must be positive, got {size}")
    return _chunks(iter(ids), size)


def _chunks(it: Iterator[T], size: int) -> Iterator[list[T]]:
    while batch := list(islice(it, size)):
        yield batch
