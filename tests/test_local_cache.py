from datetime import datetime, timezone

from storage.local_cache import LocalCache, collection_cache_key
from storage.local_store import FileLocalStore, MemoryLocalStore


class BrokenStore(MemoryLocalStore):
    def get_item(self, key):
        raise OSError("disk gone")

    def set_item(self, key, value):
        raise OSError("disk gone")


def test_round_trip_returns_data_unchanged(cache):
    data = [{"id": "p1", "name": "Sparkler", "createdAt": datetime(2026, 7, 1, tzinfo=timezone.utc)}]
    assert cache.set("cached_products", data)
    assert cache.get("cached_products") == data


def test_expired_entry_is_evicted(cache, clock):
    cache.set("cached_products", [{"id": "p1"}])
    clock.advance(1801)
    assert cache.get("cached_products") is None
    # evicted, so even a stale lookup is empty now
    assert cache.lookup("cached_products") == (None, False)


def test_lookup_reports_staleness_without_evicting(cache, clock):
    cache.set("cached_products", [{"id": "p1"}])
    clock.advance(1801)
    assert cache.lookup("cached_products") == ([{"id": "p1"}], False)
    assert cache.lookup("cached_products")[0] == [{"id": "p1"}]


def test_store_failures_are_misses_not_errors():
    c = LocalCache(store=BrokenStore())
    assert c.set("k", [1]) is False
    assert c.get("k") is None


def test_quota_exceeded_write_is_reported():
    c = LocalCache(store=MemoryLocalStore(max_bytes=50))
    assert c.set("k", ["x" * 100]) is False
    assert c.get("k") is None


def test_file_store_persists_between_instances(tmp_path):
    LocalCache(store=FileLocalStore(str(tmp_path))).set("cached_vendors", [{"id": "v1"}])
    assert LocalCache(store=FileLocalStore(str(tmp_path))).get("cached_vendors") == [{"id": "v1"}]


def test_cache_key_naming():
    assert collection_cache_key("orders") == "cached_orders"
