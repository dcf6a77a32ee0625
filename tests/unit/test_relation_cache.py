"""
Unit tests for the versioned relation label cache.
"""
from cardgraph.db.kv_store import InMemoryStore
from cardgraph.semantic.relation_cache import RelationCache, versioned_key

CACHE_KEY = "quickflash_edge_labels"
MODEL = "gpt-4o-mini@https://llm.example.test/v1"


class TestRelationCache:
    """Tests for get/put and legacy migration."""

    def test_put_then_get(self, store):
        cache = RelationCache(store, CACHE_KEY)

        cache.put("a|b", MODEL, "prerequisite-of")

        assert cache.get("a|b", MODEL) == "prerequisite-of"
        assert store.get(CACHE_KEY) == {f"a|b|{MODEL}": "prerequisite-of"}

    def test_absent_returns_none(self, store):
        assert RelationCache(store, CACHE_KEY).get("a|b", MODEL) is None

    def test_other_model_version_is_not_reused(self, store):
        """Labels from another provider stay stored but are never returned."""
        cache = RelationCache(store, CACHE_KEY)
        cache.put("a|b", "old-model@https://old.test", "part-of")

        assert cache.get("a|b", MODEL) is None
        assert cache.get("a|b", "old-model@https://old.test") == "part-of"

    def test_legacy_entry_is_copied_forward(self):
        """A bare edge key is returned and persisted under the versioned key."""
        store = InMemoryStore({CACHE_KEY: {"a|b": "duplicate-of"}})
        cache = RelationCache(store, CACHE_KEY)

        assert cache.get("a|b", MODEL) == "duplicate-of"

        stored = store.get(CACHE_KEY)
        assert stored[versioned_key("a|b", MODEL)] == "duplicate-of"
        assert stored["a|b"] == "duplicate-of"

    def test_migrated_entry_does_not_reconsult_legacy(self):
        """After migration the versioned key wins even if the legacy value changes."""
        store = InMemoryStore({CACHE_KEY: {"a|b": "duplicate-of"}})
        cache = RelationCache(store, CACHE_KEY)
        cache.get("a|b", MODEL)

        mapping = store.get(CACHE_KEY)
        mapping["a|b"] = "cause-of"
        store.set(CACHE_KEY, mapping)

        assert cache.get("a|b", MODEL) == "duplicate-of"

    def test_get_many_mixes_hits_migrations_and_misses(self):
        store = InMemoryStore({CACHE_KEY: {f"a|b|{MODEL}": "part-of", "c|d": "example-of"}})
        cache = RelationCache(store, CACHE_KEY)

        found = cache.get_many(["a|b", "c|d", "e|f"], MODEL)

        assert found == {"a|b": "part-of", "c|d": "example-of"}

    def test_put_many_preserves_existing_entries(self, store):
        cache = RelationCache(store, CACHE_KEY)
        cache.put("a|b", MODEL, "part-of")

        written = cache.put_many({"c|d": "cause-of", "e|f": "same-topic"}, MODEL)

        assert written == 2
        assert cache.get_many(["a|b", "c|d", "e|f"], MODEL) == {
            "a|b": "part-of",
            "c|d": "cause-of",
            "e|f": "same-topic",
        }

    def test_put_many_empty_is_noop(self, store):
        assert RelationCache(store, CACHE_KEY).put_many({}, MODEL) == 0
        assert CACHE_KEY not in store

    def test_versioned_key_defaults_tag(self):
        assert versioned_key("a|b", "") == "a|b|default"
