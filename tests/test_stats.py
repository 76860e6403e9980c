import pytest

from pdfrag.stats import document_stats, estimate_cost, percentiles
from pdfrag.types import IndexEntry


def _entry(i, page, tokens, importance, digest):
    return IndexEntry(
        id=f"d_p{page}_c{i}", text="t", embedding=[0.0], page_number=page, source="d",
        chunk_index=i, token_count=tokens, importance=importance, content_hash=digest,
    )


def test_document_stats():
    entries = [
        _entry(0, 1, 10, 1.0, "a"),
        _entry(1, 1, 20, 1.3, "b"),
        _entry(0, 2, 30, 1.2, "a"),
    ]
    stats = document_stats(entries)
    assert stats["total_chunks"] == 3
    assert stats["total_tokens"] == 60
    assert stats["average_chunk_size"] == 20
    assert stats["pages_processed"] == 2
    assert stats["duplicate_chunks"] == 1
    assert stats["token_percentiles"]["p50"] == 20
    assert stats["importance_percentiles"]["p95"] == pytest.approx(1.2)


def test_empty_stats():
    stats = document_stats([])
    assert stats["total_chunks"] == 0
    assert stats["token_percentiles"] == {}


def test_percentiles_pick_observed_values():
    assert percentiles([1, 2, 3, 4]) == {"p25": 1, "p50": 2, "p75": 3, "p90": 3, "p95": 3}


def test_estimate_cost():
    cost = estimate_cost(10_000, "jina-embeddings-v3")
    assert cost["embedding"]["tokens"] == 10_000
    assert cost["total"] == pytest.approx(0.0013)
