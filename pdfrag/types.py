from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import config


@dataclass(frozen=True)
class Chunk:
    text: str
    source_document: str
    page_number: int
    chunk_index: int
    token_count: int
    importance: float
    content_hash: str

    @property
    def id(self) -> str:
        return entry_id(self.source_document, self.page_number, self.chunk_index)


def entry_id(source: str, page_number: int, chunk_index: int) -> str:
    return f"{source}_p{page_number}_c{chunk_index}"


@dataclass
class IndexEntry:
    id: str
    text: str
    embedding: List[float]
    page_number: int
    source: str
    chunk_index: int
    token_count: int
    importance: float
    content_hash: str

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: List[float]) -> "IndexEntry":
        return cls(
            id=chunk.id,
            text=chunk.text,
            embedding=list(embedding),
            page_number=chunk.page_number,
            source=chunk.source_document,
            chunk_index=chunk.chunk_index,
            token_count=chunk.token_count,
            importance=chunk.importance,
            content_hash=chunk.content_hash,
        )


@dataclass
class SearchResult:
    id: str
    text: str
    score: float
    page_number: int
    source: str
    chunk_index: int
    token_count: int
    importance: float
    content_hash: str
    neighbors: List[str] = field(default_factory=list)

    @classmethod
    def from_entry(cls, entry: IndexEntry, score: float) -> "SearchResult":
        return cls(
            id=entry.id,
            text=entry.text,
            score=float(score),
            page_number=entry.page_number,
            source=entry.source,
            chunk_index=entry.chunk_index,
            token_count=entry.token_count,
            importance=entry.importance,
            content_hash=entry.content_hash,
        )

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "page_number": self.page_number,
            "source": self.source,
            "chunk_index": self.chunk_index,
            "token_count": self.token_count,
            "importance": self.importance,
            "content_hash": self.content_hash,
            "score": self.score,
            "neighbors": list(self.neighbors),
        }


@dataclass
class ProgressEvent:
    phase: str
    current: int
    total: int
    percentage: float
    message: str


@dataclass
class AnswerResult:
    answer: str
    sources: List[Dict[str, Any]]
    usage: Dict[str, int] = field(default_factory=dict)
    cached: bool = False
    model_id: Optional[str] = None


@dataclass
class IngestionResult:
    document_name: str
    total_pages: int
    total_chunks: int
    processing_ms: float
    estimated_cost: Dict[str, Any]
    stats: Dict[str, Any]


@dataclass
class RagConfig:
    embedding_model: str = config.EMBEDDING_MODEL
    embedding_dimensions: int = config.EMBEDDING_DIMENSIONS
    chat_model: str = config.LLM_MODEL
    rerank_model: str = config.RERANK_MODEL
    chunk_size: int = config.CHUNK_SIZE
    chunk_overlap: int = config.CHUNK_OVERLAP
    temperature: float = config.TEMPERATURE
    max_tokens: int = config.MAX_TOKENS
    max_context_tokens: int = config.MAX_CONTEXT_TOKENS
    top_k: int = config.TOP_K_RETRIEVE
    similarity_threshold: float = config.SIMILARITY_THRESHOLD
    batch_size: int = config.EMBED_BATCH_SIZE
    batch_delay: float = config.EMBED_BATCH_DELAY
    max_retries: int = config.MAX_RETRIES
    retry_delay: float = config.RETRY_BASE_DELAY
    retry_jitter: float = config.RETRY_JITTER
    embedding_cache_size: int = config.EMBEDDING_CACHE_SIZE
    response_cache_size: int = config.RESPONSE_CACHE_SIZE
    response_cache_ttl: float = config.RESPONSE_CACHE_TTL
    pages_per_batch: int = config.PAGES_PER_BATCH
    ocr_fallback: bool = config.OCR_FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
