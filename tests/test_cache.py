from concurrent.futures import ThreadPoolExecutor
import threading
import time

import pytest

from mcceval.evaluation import PhenotypeCache


def test_concurrent_first_encounters_compute_once():
    cache = PhenotypeCache()
    calls = []
    start = threading.Barrier(8)

    def compute():
        calls.append(1)
        time.sleep(0.05)
        return object()

    def worker():
        start.wait()
        return cache.get_or_insert("maze-1", compute)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = [f.result() for f in [pool.submit(worker) for _ in range(8)]]

    assert len(calls) == 1
    assert all(r is results[0] for r in results)
    assert len(cache) == 1
    assert cache.misses == 1
    assert cache.hits == 7


def test_failed_compute_is_not_cached():
    cache = PhenotypeCache()

    def boom():
        raise ValueError("bad genome")

    with pytest.raises(ValueError):
        cache.get_or_insert("k", boom)
    assert "k" not in cache
    assert cache.get_or_insert("k", lambda: 42) == 42


def test_evict_and_clear():
    cache = PhenotypeCache()
    cache.get_or_insert(("maze", 1), lambda: "m1")
    cache.get_or_insert(("navigator", 2), lambda: "n2")
    cache.evict(("maze", 1))
    assert cache.get(("maze", 1)) is None
    assert cache.get(("navigator", 2)) == "n2"
    cache.clear()
    assert len(cache) == 0
