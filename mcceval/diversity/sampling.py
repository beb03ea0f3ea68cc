"""Reference-set sampling for diversity estimates.

All samplers draw without replacement and take the RNG explicitly so a
seeded run is reproducible.
"""

from __future__ import annotations

from collections import OrderedDict
import random
from typing import Callable, Hashable, Sequence, TypeVar

from mcceval.exceptions import ConfigurationError

__all__ = ["make_rng", "sample_uniform", "sample_stratified", "sample_even"]

T = TypeVar("T")


def make_rng(seed: int | None = None) -> random.Random:
    return random.Random(seed)


def _check_size(size: int) -> None:
    if size < 0:
        raise ConfigurationError(f"sample size must be >= 0, got {size}")


def _groups(items: Sequence[T], key: Callable[[T], Hashable]) -> OrderedDict[Hashable, list[T]]:
    groups: OrderedDict[Hashable, list[T]] = OrderedDict()
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def sample_uniform(items: Sequence[T], size: int, rng: random.Random) -> list[T]:
    """``min(size, len(items))`` distinct items; 0 means take everything."""
    _check_size(size)
    if size == 0 or size >= len(items):
        return list(items)
    return rng.sample(list(items), size)


def sample_stratified(
    items: Sequence[T],
    size: int,
    key: Callable[[T], Hashable],
    rng: random.Random,
) -> list[T]:
    """Up to ``size`` items from every group (e.g. species)."""
    _check_size(size)
    if size == 0:
        return list(items)
    sampled: list[T] = []
    for members in _groups(items, key).values():
        sampled.extend(sample_uniform(members, size, rng))
    return sampled


def sample_even(
    items: Sequence[T],
    size: int,
    key: Callable[[T], Hashable],
    rng: random.Random,
) -> list[T]:
    """``min(size, len(items))`` items spread as evenly as possible over categories.

    Quota a category cannot fill is handed round-robin to categories that
    still have unsampled members.
    """
    _check_size(size)
    if size == 0 or size >= len(items):
        return list(items)

    groups = _groups(items, key)
    pools = {k: rng.sample(members, len(members)) for k, members in groups.items()}
    taken = {k: 0 for k in groups}
    remaining = size
    while remaining > 0:
        open_keys = [k for k in groups if taken[k] < len(pools[k])]
        share, extra = divmod(remaining, len(open_keys))
        for i, k in enumerate(open_keys):
            want = share + (1 if i < extra else 0)
            grant = min(want, len(pools[k]) - taken[k])
            taken[k] += grant
            remaining -= grant

    return [item for k in groups for item in pools[k][: taken[k]]]
