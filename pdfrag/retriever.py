import logging
from dataclasses import replace
from typing import List, Optional

from config import SIMILARITY_THRESHOLD, TOP_K_RETRIEVE
from pdfrag.embeddings import EmbeddingGenerator
from pdfrag.errors import EmbeddingError, RetrievalError
from pdfrag.index import VectorIndex
from pdfrag.reranker import LLMReranker
from pdfrag.types import SearchResult, entry_id

logger = logging.getLogger(__name__)


class Retriever:
    def __init__(
        self,
        embedder: EmbeddingGenerator,
        index: Optional[VectorIndex],
        reranker: Optional[LLMReranker] = None,
        top_k: int = TOP_K_RETRIEVE,
        threshold: float = SIMILARITY_THRESHOLD,
    ):
        self.embedder = embedder
        self.index = index
        self.reranker = reranker
        self.top_k = top_k
        self.threshold = threshold

    async def retrieve(
        self,
        query: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        use_reranking: bool = True,
        include_context: bool = True,
    ) -> List[SearchResult]:
        """Embed, search 2x `limit` candidates, rerank, expand, truncate.

        Reranking and context expansion are best effort: their failures are
        logged and the previous ordering is kept.
        """
        if self.index is None:
            raise RetrievalError("Retrieval system is not initialized")
        if not isinstance(query, str) or not query.strip():
            return []

        limit = self.top_k if limit is None else limit
        threshold = self.threshold if threshold is None else threshold

        try:
            query_vector = await self.embedder.embed(query)
        except EmbeddingError as exc:
            raise RetrievalError("Could not embed the query", {"query": query[:100]}) from exc

        results = self.index.hybrid_search(query, query_vector, limit * 2, threshold)
        if not results:
            logger.info("No passages above threshold %.2f for query %r", threshold, query[:80])
            return []

        if use_reranking and self.reranker is not None:
            try:
                results = await self.reranker.rerank(query, results)
            except Exception as exc:
                logger.warning("Reranking failed, using similarity order: %s", exc)

        if include_context:
            try:
                results = self.expand_with_context(results)
            except Exception as exc:
                logger.warning("Context expansion failed: %s", exc)

        return results[:limit]

    def expand_with_context(self, results: List[SearchResult]) -> List[SearchResult]:
        """Attach the ids of the previous/next chunk on the same page when indexed."""
        expanded = []
        for result in results:
            neighbors = [
                candidate
                for candidate in (
                    entry_id(result.source, result.page_number, result.chunk_index - 1),
                    entry_id(result.source, result.page_number, result.chunk_index + 1),
                )
                if candidate in self.index
            ]
            expanded.append(replace(result, neighbors=neighbors))
        return expanded
