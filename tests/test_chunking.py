import pytest

from mcceval.evaluation import chunk
from mcceval.exceptions import ConfigurationError


def test_chunks_cover_ids_in_order():
    ids = list(range(250))
    chunks = list(chunk(ids, 100))
    assert [len(c) for c in chunks] == [100, 100, 50]
    assert [i for c in chunks for i in c] == ids


def test_empty_input_yields_nothing():
    assert list(chunk([], 10)) == []


def test_works_on_generators():
    assert list(chunk((i for i in range(5)), 2)) == [[0, 1], [2, 3], [4]]


@pytest.mark.parametrize("size", [0, -3])
def test_invalid_size_fails_before_iteration(size):
    with pytest.raises(ConfigurationError):
        chunk([1, 2, 3], size)
