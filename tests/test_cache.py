from pdfrag.cache import EmbeddingCache, ResponseCache, response_cache_key
from pdfrag.hashing import content_hash


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_embedding_cache_evicts_oldest_insert():
    cache = EmbeddingCache(max_size=2)
    cache.set("a", [1.0])
    cache.set("b", [2.0])
    cache.get("a")
    cache.set("c", [3.0])
    assert "a" not in cache
    assert cache.has("b") and cache.has("c")
    assert len(cache) == 2


def test_embedding_cache_overwrite_reinserts_at_back():
    cache = EmbeddingCache(max_size=2)
    cache.set("a", [1.0])
    cache.set("b", [2.0])
    cache.set("a", [9.0])
    assert cache.get("a") == [9.0]
    assert len(cache) == 2
    cache.set("c", [3.0])
    assert "b" not in cache
    assert [k for k, _ in cache.items()] == ["a", "c"]


def test_embedding_cache_items_limit():
    cache = EmbeddingCache(max_size=10)
    cache.update((str(i), [float(i)]) for i in range(5))
    assert [k for k, _ in cache.items(limit=3)] == ["0", "1", "2"]


def test_response_cache_key_ignores_source_order():
    assert response_cache_key("q", ["b", "a"]) == response_cache_key("q", ["a", "b"]) == "q_a_b"


def test_response_cache_expires_after_ttl():
    clock = Clock()
    cache = ResponseCache(max_entries=5, ttl_seconds=10, clock=clock)
    cache.set("k", "answer")
    clock.now = 9.9
    assert cache.get("k") == "answer"
    clock.now = 10.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_response_cache_evicts_least_recently_used():
    cache = ResponseCache(max_entries=2, ttl_seconds=60, clock=Clock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1 and cache.get("c") == 3


def test_content_hash_ignores_whitespace_layout():
    assert content_hash("alpha  beta\ngamma") == content_hash(" alpha beta gamma ")
    assert content_hash("alpha") != content_hash("beta")
