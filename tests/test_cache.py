from __future__ import annotations

import pytest

from scratch_git.transport.cache import ResponseCache


def test_cache_evicts_least_recently_used() -> None:
    cache = ResponseCache(max_entries=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == (True, 1)

    cache.put("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 2


def test_cache_stores_null_responses() -> None:
    cache = ResponseCache()
    cache.put("key", None)

    assert cache.get("key") == (True, None)
    assert cache.invalidate("key") is True
    assert cache.get("key") == (False, None)


def test_disabled_cache_never_hits() -> None:
    cache = ResponseCache(enabled=False)
    cache.put("key", {"value": 1})

    assert cache.get("key") == (False, None)
    assert len(cache) == 0


def test_cache_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        ResponseCache(max_entries=0)
