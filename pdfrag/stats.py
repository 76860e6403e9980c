from typing import Any, Dict, List, Sequence

import numpy as np

from pdfrag.types import IndexEntry

# USD per 1K tokens for the embedding endpoint
EMBEDDING_PRICE_PER_1K = 0.00013

PERCENTILES = (25, 50, 75, 90, 95)


def percentiles(values: Sequence[float]) -> Dict[str, float]:
    if not values:
        return {}
    arr = np.asarray(values, dtype=float)
    return {f"p{p}": round(float(np.percentile(arr, p, method="lower")), 3) for p in PERCENTILES}


def document_stats(entries: List[IndexEntry]) -> Dict[str, Any]:
    if not entries:
        return {
            "total_chunks": 0,
            "total_tokens": 0,
            "average_chunk_size": 0,
            "pages_processed": 0,
            "duplicate_chunks": 0,
            "token_percentiles": {},
            "importance_percentiles": {},
        }
    tokens = [e.token_count for e in entries]
    importance = [e.importance for e in entries]
    total_tokens = sum(tokens)
    return {
        "total_chunks": len(entries),
        "total_tokens": total_tokens,
        "average_chunk_size": round(total_tokens / len(entries)),
        "pages_processed": len({e.page_number for e in entries}),
        "duplicate_chunks": len(entries) - len({e.content_hash for e in entries}),
        "token_percentiles": percentiles(tokens),
        "importance_percentiles": percentiles(importance),
    }


def estimate_cost(total_tokens: int, model: str) -> Dict[str, Any]:
    cost = round(total_tokens / 1000 * EMBEDDING_PRICE_PER_1K, 6)
    return {"embedding": {"model": model, "tokens": total_tokens, "cost": cost}, "total": cost}
