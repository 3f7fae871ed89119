from __future__ import annotations

from pathlib import Path

from velibadvisor.config.models import CacheSettings
from velibadvisor.utils.cache import JsonFileCache


class Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_cache_round_trip_and_ttl(tmp_path: Path) -> None:
    clock = Clock()
    cache = JsonFileCache(CacheSettings(dir=tmp_path / "cache", ttl_seconds=60), now_fn=clock)
    key = cache.make_key("velib:stations", {"lat": 48.85, "lng": 2.35})

    assert cache.get(key) is None
    cache.set(key, [{"recordid": "1"}])
    assert cache.get(key) == [{"recordid": "1"}]

    clock.now += 61
    assert cache.get(key) is None
    assert cache.get(key, ttl_seconds=3600) == [{"recordid": "1"}]


def test_make_key_is_stable_and_namespaced(tmp_path: Path) -> None:
    cache = JsonFileCache(CacheSettings(dir=tmp_path))
    a = cache.make_key("ors:directions", {"b": 1, "a": 2})
    assert a == cache.make_key("ors:directions", {"a": 2, "b": 1})
    assert a != cache.make_key("nominatim:geocode", {"a": 2, "b": 1})


def test_corrupt_entries_are_ignored(tmp_path: Path) -> None:
    cache = JsonFileCache(CacheSettings(dir=tmp_path))
    key = cache.make_key("x", 1)
    (tmp_path / f"{key}.json").write_text("{not json", encoding="utf-8")
    assert cache.get(key) is None


def test_purge_expired(tmp_path: Path) -> None:
    clock = Clock()
    cache = JsonFileCache(CacheSettings(dir=tmp_path, ttl_seconds=100), now_fn=clock)
    old = cache.make_key("x", "old")
    cache.set(old, 1)
    clock.now += 50
    fresh = cache.make_key("x", "fresh")
    cache.set(fresh, 2)
    (tmp_path / "broken.json").write_text("[]", encoding="utf-8")

    clock.now += 60
    assert cache.purge_expired() == 2
    assert cache.get(fresh) == 2
    assert cache.get(old, ttl_seconds=0) is None
