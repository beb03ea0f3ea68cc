from collections import Counter

import pytest

from mcceval.diversity.sampling import (
    make_rng,
    sample_even,
    sample_stratified,
    sample_uniform,
)
from mcceval.exceptions import ConfigurationError


def test_uniform_draws_distinct_items():
    items = list(range(50))
    sample = sample_uniform(items, 10, make_rng(1))
    assert len(sample) == 10
    assert len(set(sample)) == 10
    assert set(sample) <= set(items)


def test_uniform_is_reproducible_with_a_seed():
    items = list(range(50))
    assert sample_uniform(items, 10, make_rng(7)) == sample_uniform(items, 10, make_rng(7))


def test_uniform_caps_at_population_size():
    assert sorted(sample_uniform([3, 1, 2], 10, make_rng(0))) == [1, 2, 3]
    assert sample_uniform([3, 1, 2], 0, make_rng(0)) == [3, 1, 2]


def test_stratified_caps_each_group():
    items = [("a", i) for i in range(5)] + [("b", i) for i in range(2)]
    sample = sample_stratified(items, 3, key=lambda x: x[0], rng=make_rng(0))
    assert Counter(g for g, _ in sample) == {"a": 3, "b": 2}


def test_even_spreads_across_categories():
    items = [(maze, i) for maze in range(3) for i in range(10)]
    sample = sample_even(items, 9, key=lambda x: x[0], rng=make_rng(3))
    assert Counter(m for m, _ in sample) == {0: 3, 1: 3, 2: 3}


def test_even_redistributes_quota_of_small_categories():
    items = [(0, i) for i in range(1)] + [(1, i) for i in range(10)]
    sample = sample_even(items, 6, key=lambda x: x[0], rng=make_rng(3))
    assert Counter(m for m, _ in sample) == {0: 1, 1: 5}
    assert len(set(sample)) == 6


def test_negative_size_rejected():
    with pytest.raises(ConfigurationError):
        sample_uniform([1, 2], -1, make_rng(0))
    with pytest.raises(ConfigurationError):
        sample_stratified([1], -1, key=lambda x: x, rng=make_rng(0))
    with pytest.raises(ConfigurationError):
        sample_even([1], -1, key=lambda x: x, rng=make_rng(0))
