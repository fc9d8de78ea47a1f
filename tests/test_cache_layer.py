from __future__ import annotations

import pytest

from cache_layer import ReferenceCache, reference_key


def test_reference_key_normalizes_table_and_drops_blank_scope():
    assert reference_key(" Onboarding_Steps ") == ("onboarding_steps",)
    assert reference_key("steps", 7, None, "") == ("steps", 7)


def test_load_calls_loader_once():
    cache = ReferenceCache(ttl_seconds=60)
    calls = []

    def load():
        calls.append(1)
        return ()

    key = reference_key("steps")
    # An empty table is still a cached answer.
    assert cache.load(key, load) == ()
    assert cache.load(key, load) == ()
    assert len(calls) == 1

    stats = cache.stats()
    assert (stats["hits"], stats["misses"], stats["loads"]) == (1, 1, 1)
    assert stats["hit_rate"] == 50.0


def test_invalidate_drops_every_key_of_a_table():
    cache = ReferenceCache()
    cache.load(reference_key("steps"), lambda: 1)
    cache.load(reference_key("steps", 3), lambda: 2)
    cache.load(reference_key("categories"), lambda: 3)

    assert cache.invalidate("STEPS") == 2
    assert cache.invalidate("") == 0
    assert cache.peek(reference_key("steps")) is None
    assert cache.peek(reference_key("categories")) == 3

    cache.clear()
    assert cache.stats()["size"] == 0
    assert cache.stats()["hits"] == 0


def test_sql_storage_caches_reference_tables(make_storage):
    storage = make_storage()
    if storage.backend != "sql":
        pytest.skip("reference cache lives in the SQL backend")
    storage.create_document_category({"name": "Identity"})
    storage.list_document_categories()
    storage.list_document_categories()
    storage.create_document_category({"name": "Payment"})

    assert [c.name for c in storage.list_document_categories()] == ["Identity", "Payment"]
    stats = storage.pool_stats()["reference_cache"]
    assert stats["hits"] >= 1
    assert stats["invalidations"] >= 2
