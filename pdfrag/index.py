import logging
import re
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np

from pdfrag.errors import FormatError
from pdfrag.types import IndexEntry, SearchResult

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\w+", re.UNICODE)


def _normalize(v: np.ndarray) -> np.ndarray:
    v = np.ascontiguousarray(v, dtype=np.float32)
    faiss.normalize_L2(v)
    return v


def _terms(text: str) -> set:
    return set(_WORD.findall(text.lower()))


class VectorIndex:
    """In-memory chunk store with cosine search over a faiss inner-product index.

    Entries keep insertion order; re-inserting an id overwrites the entry in
    place. The faiss index is rebuilt lazily after writes.
    """

    def __init__(self, dimensions: int):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self._entries: Dict[str, IndexEntry] = {}
        self._ids: List[str] = []
        self._vector_index: Optional[faiss.Index] = None

    def insert(self, entry: IndexEntry) -> None:
        if len(entry.embedding) != self.dimensions:
            raise ValueError(f"Embedding has {len(entry.embedding)} dimensions, index expects {self.dimensions}")
        self._entries[entry.id] = entry
        self._vector_index = None

    def get(self, entry_id: str) -> Optional[IndexEntry]:
        return self._entries.get(entry_id)

    def entries(self) -> List[IndexEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()
        self._ids = []
        self._vector_index = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def _index(self) -> faiss.Index:
        if self._vector_index is None:
            self._ids = list(self._entries)
            matrix = np.array([self._entries[i].embedding for i in self._ids], dtype=np.float32)
            index = faiss.IndexFlatIP(self.dimensions)
            index.add(_normalize(matrix.reshape(-1, self.dimensions)))
            self._vector_index = index
        return self._vector_index

    def search(self, query_vector: Sequence[float], limit: int, threshold: float = 0.0) -> List[SearchResult]:
        if not self._entries or limit <= 0:
            return []
        if len(query_vector) != self.dimensions:
            raise ValueError(f"Query vector has {len(query_vector)} dimensions, index expects {self.dimensions}")

        index = self._index()
        query = _normalize(np.array([query_vector], dtype=np.float32))
        scores, idxs = index.search(query, min(limit, len(self._ids)))

        results: List[SearchResult] = []
        for score, idx in zip(scores[0].tolist(), idxs[0].tolist()):
            if idx < 0 or score < threshold:
                continue
            entry = self._entries[self._ids[idx]]
            results.append(SearchResult.from_entry(entry, max(0.0, min(1.0, score))))
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def keyword_search(self, query: str, limit: int) -> List[SearchResult]:
        q = _terms(query or "")
        if not q or limit <= 0:
            return []
        scored = []
        for entry in self._entries.values():
            overlap = len(q & _terms(entry.text))
            if overlap:
                scored.append(SearchResult.from_entry(entry, overlap / len(q)))
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:limit]

    def hybrid_search(
        self,
        query: str,
        query_vector: Sequence[float],
        limit: int,
        threshold: float = 0.0,
    ) -> List[SearchResult]:
        """Vector search, degrading to keyword search if the vector path fails."""
        try:
            return self.search(query_vector, limit, threshold)
        except Exception as exc:
            logger.warning("Vector search failed, degraded to keyword search: %s", exc)
            return self.keyword_search(query, limit)

    def serialize(self) -> Dict[str, Any]:
        return {
            "dimensions": self.dimensions,
            "entries": [asdict(e) for e in self._entries.values()],
        }

    @classmethod
    def deserialize(cls, blob: Dict[str, Any]) -> "VectorIndex":
        if not isinstance(blob, dict) or not isinstance(blob.get("entries"), list):
            raise FormatError("Serialized index is missing its entries")
        dimensions = blob.get("dimensions")
        if isinstance(dimensions, bool) or not isinstance(dimensions, int):
            raise FormatError("Serialized index has no integer dimension", {"dimensions": dimensions})

        index = cls(dimensions)
        for row in blob["entries"]:
            try:
                index.insert(IndexEntry(**row))
            except (TypeError, ValueError) as exc:
                raise FormatError("Serialized index has a malformed entry", {"error": str(exc)}) from exc
        return index
