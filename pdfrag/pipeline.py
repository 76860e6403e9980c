"""
Session-level RAG pipeline.

One `RagPipeline` owns the clients, caches, splitter and vector index for a
single active document; callers construct it once and pass it around.
"""

import logging
import os
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pdfrag.cache import EmbeddingCache, ResponseCache
from pdfrag.chunking import TextSplitter, estimate_tokens
from pdfrag.embeddings import EmbeddingClient, EmbeddingGenerator, JinaEmbeddingClient
from pdfrag.errors import InitializationError
from pdfrag.extraction import ExtractionWorker, clean_page_text, reconstruct_page_text, run_extraction
from pdfrag.hashing import content_hash
from pdfrag.importance import score_importance
from pdfrag.index import VectorIndex
from pdfrag.llm import ChatClient, GroqChatClient, ResponseGenerator, StreamingAnswer
from pdfrag.reranker import LLMReranker
from pdfrag.retriever import Retriever
from pdfrag.stats import document_stats, estimate_cost
from pdfrag.store import build_export, dumps_export, load_export, loads_export, restore_export, save_export
from pdfrag.types import AnswerResult, Chunk, IndexEntry, IngestionResult, ProgressEvent, RagConfig, SearchResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
Page = Union[str, Iterable[Any]]

EXTRACTION_SHARE = 40.0


def validate_api_key(key: Optional[str]) -> bool:
    return isinstance(key, str) and len(key) >= 20 and not any(c.isspace() for c in key)


def _report(on_progress: Optional[ProgressCallback], phase: str, current: int, total: int, percentage: float, message: str) -> None:
    if on_progress is not None:
        on_progress(ProgressEvent(phase, current, total, round(percentage, 2), message))


class RagPipeline:
    def __init__(
        self,
        embedding_client: EmbeddingClient,
        chat_client: ChatClient,
        rag_config: Optional[RagConfig] = None,
    ):
        cfg = rag_config or RagConfig()
        self.config = cfg
        self.embedding_cache = EmbeddingCache(cfg.embedding_cache_size)
        self.response_cache = ResponseCache(cfg.response_cache_size, cfg.response_cache_ttl)
        self.embedder = EmbeddingGenerator(
            embedding_client,
            self.embedding_cache,
            dimensions=cfg.embedding_dimensions,
            max_retries=cfg.max_retries,
            base_delay=cfg.retry_delay,
            jitter=cfg.retry_jitter,
        )
        self.chat = chat_client
        self.splitter = TextSplitter(cfg.chunk_size, cfg.chunk_overlap)
        self.index: Optional[VectorIndex] = None
        self.retriever = Retriever(
            self.embedder,
            None,
            reranker=LLMReranker(chat_client, cfg.rerank_model),
            top_k=cfg.top_k,
            threshold=cfg.similarity_threshold,
        )
        self.generator = ResponseGenerator(
            self.retriever,
            chat_client,
            self.response_cache,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            max_context_tokens=cfg.max_context_tokens,
        )
        self.document_name: Optional[str] = None

    @classmethod
    def from_env(cls, rag_config: Optional[RagConfig] = None) -> "RagPipeline":
        cfg = rag_config or RagConfig()
        keys = {name: os.getenv(name) for name in ("JINA_API_KEY", "GROQ_API_KEY")}
        for name, key in keys.items():
            if not validate_api_key(key):
                raise InitializationError(f"{name} is missing or malformed", {"variable": name})
        return cls(
            JinaEmbeddingClient(keys["JINA_API_KEY"], cfg.embedding_model, cfg.embedding_dimensions),
            GroqChatClient(keys["GROQ_API_KEY"], cfg.chat_model),
            cfg,
        )

    @property
    def initialized(self) -> bool:
        return self.index is not None

    def initialize(self) -> None:
        if self.index is None:
            self._activate(self._new_index())

    def _new_index(self) -> VectorIndex:
        try:
            return VectorIndex(self.config.embedding_dimensions)
        except ValueError as exc:
            raise InitializationError("Could not create the vector index", {"error": str(exc)}) from exc

    def _activate(self, index: VectorIndex) -> None:
        self.index = index
        self.retriever.index = index

    # Ingestion

    def build_chunks(self, source: str, page_texts: Sequence[str]) -> List[Chunk]:
        chunks: List[Chunk] = []
        total_pages = len(page_texts)
        for page_number, text in enumerate(page_texts, start=1):
            for chunk_index, part in enumerate(self.splitter.split(text)):
                chunks.append(
                    Chunk(
                        text=part,
                        source_document=source,
                        page_number=page_number,
                        chunk_index=chunk_index,
                        token_count=estimate_tokens(part),
                        importance=score_importance(part, page_number, total_pages),
                        content_hash=content_hash(part),
                    )
                )
        return chunks

    async def ingest_pages(
        self,
        source: str,
        pages: Sequence[Page],
        on_progress: Optional[ProgressCallback] = None,
    ) -> IngestionResult:
        """Ingest pages given as plain text or as positioned fragments."""
        started = time.perf_counter()
        total = len(pages)
        page_texts: List[str] = []
        for page_number, page in enumerate(pages, start=1):
            text = page if isinstance(page, str) else reconstruct_page_text(page)
            page_texts.append(clean_page_text(text))
            _report(
                on_progress,
                "extraction",
                page_number,
                total,
                page_number / total * EXTRACTION_SHARE,
                f"Extracting text: {page_number}/{total} pages",
            )
        return await self._ingest(source, page_texts, on_progress, started)

    async def ingest_pdf(self, path: str, on_progress: Optional[ProgressCallback] = None) -> IngestionResult:
        started = time.perf_counter()
        worker = ExtractionWorker(self.config.pages_per_batch, self.config.ocr_fallback)
        page_texts: List[str] = []
        async for message in run_extraction(path, worker):
            page_texts.extend(page["text"] for page in message.data["pages"])
            current, total = message.data["current"], message.data["total"]
            _report(
                on_progress,
                "extraction",
                current,
                total,
                current / total * EXTRACTION_SHARE,
                f"Extracting text: {current}/{total} pages",
            )
        return await self._ingest(os.path.basename(path), page_texts, on_progress, started)

    async def _ingest(
        self,
        source: str,
        page_texts: List[str],
        on_progress: Optional[ProgressCallback],
        started: float,
    ) -> IngestionResult:
        chunks = self.build_chunks(source, page_texts)
        logger.info("Split %s into %d chunks over %d pages", source, len(chunks), len(page_texts))

        def on_batch(done: int, total: int) -> None:
            _report(
                on_progress,
                "embedding",
                done,
                total,
                EXTRACTION_SHARE + done / total * (100 - EXTRACTION_SHARE),
                f"Embedding chunks: {done}/{total}",
            )

        vectors = await self.embedder.embed_batch(
            [c.text for c in chunks],
            batch_size=self.config.batch_size,
            batch_delay=self.config.batch_delay,
            on_batch=on_batch,
        )

        # Built aside and swapped in so a failed ingestion leaves the old document intact.
        index = self._new_index()
        for chunk, vector in zip(chunks, vectors):
            index.insert(IndexEntry.from_chunk(chunk, vector))
        self._activate(index)
        self.document_name = source

        stats = document_stats(index.entries())
        return IngestionResult(
            document_name=source,
            total_pages=len(page_texts),
            total_chunks=len(chunks),
            processing_ms=round((time.perf_counter() - started) * 1000, 2),
            estimated_cost=estimate_cost(stats["total_tokens"], self.config.embedding_model),
            stats=stats,
        )

    # Query

    async def retrieve(self, query: str, **options) -> List[SearchResult]:
        return await self.retriever.retrieve(query, **options)

    async def generate_response(self, query: str, **options) -> Union[AnswerResult, StreamingAnswer]:
        return await self.generator.generate_response(query, **options)

    # Persistence

    def stats(self) -> Dict[str, Any]:
        return document_stats(self.index.entries() if self.index is not None else [])

    def export_index(self) -> Dict[str, Any]:
        index = self.index if self.index is not None else self._new_index()
        return build_export(index, self.embedding_cache, self.config)

    def export_json(self) -> str:
        return dumps_export(self.export_index())

    def import_index(self, blob: Union[Dict[str, Any], str, bytes]) -> Dict[str, Any]:
        """Replace the live index with an export; validation runs before any mutation."""
        if isinstance(blob, (str, bytes, bytearray)):
            blob = loads_export(blob)
        index, cache_items, metadata = restore_export(blob, self.config.embedding_dimensions)

        self._activate(index)
        self.embedding_cache.clear()
        self.embedding_cache.update(cache_items)
        self.response_cache.clear()
        entries = index.entries()
        self.document_name = entries[0].source if entries else None
        logger.info("Imported index with %d entries", len(index))
        return metadata

    def save(self, path: Optional[str] = None) -> str:
        return save_export(self.export_index(), path)

    def load(self, path: Optional[str] = None) -> Dict[str, Any]:
        return self.import_index(load_export(path))

    def reset(self) -> None:
        self.index = None
        self.retriever.index = None
        self.document_name = None

    def cleanup(self) -> None:
        self.embedding_cache.clear()
        self.response_cache.clear()
