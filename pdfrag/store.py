import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from config import INDEX_STORE_DIR
from pdfrag.cache import EmbeddingCache
from pdfrag.errors import DimensionMismatchError, FormatError
from pdfrag.index import VectorIndex
from pdfrag.stats import document_stats
from pdfrag.types import RagConfig

EXPORT_VERSION = "2.0"
PARTIAL_CACHE_LIMIT = 100
DEFAULT_EXPORT_FILE = "index.json"

CacheItems = List[Tuple[str, List[float]]]


def build_export(index: VectorIndex, cache: EmbeddingCache, rag_config: RagConfig) -> Dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "metadata": {
            "embeddingModel": rag_config.embedding_model,
            "dimensions": rag_config.embedding_dimensions,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "documentStats": document_stats(index.entries()),
            "config": rag_config.to_dict(),
        },
        "serializedIndex": index.serialize(),
        "partialEmbeddingCache": [[key, vector] for key, vector in cache.items(limit=PARTIAL_CACHE_LIMIT)],
    }


def validate_export(blob: Any, dimensions: int) -> Dict[str, Any]:
    """Pre-condition checks; nothing is restored unless these pass."""
    if not isinstance(blob, dict):
        raise FormatError("Index export must be a JSON object")
    version = blob.get("version")
    if version != EXPORT_VERSION:
        raise FormatError("Incompatible index version", {"version": version, "expected": EXPORT_VERSION})
    metadata = blob.get("metadata")
    if not isinstance(metadata, dict):
        raise FormatError("Index export has no metadata")
    actual = metadata.get("dimensions")
    if isinstance(actual, bool) or not isinstance(actual, int) or actual != dimensions:
        raise DimensionMismatchError(expected=dimensions, actual=actual)
    if "serializedIndex" not in blob:
        raise FormatError("Index export has no serialized index")
    return metadata


def _cache_items(raw: Any, dimensions: int) -> CacheItems:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise FormatError("Embedding cache must be a list of [key, vector] pairs")
    items: CacheItems = []
    for pair in raw:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2 or not isinstance(pair[0], str):
            raise FormatError("Malformed embedding cache entry")
        key, vector = pair
        if not isinstance(vector, list) or len(vector) != dimensions:
            raise FormatError("Cached embedding has the wrong shape", {"key": key})
        items.append((key, [float(x) for x in vector]))
    return items


def restore_export(blob: Any, dimensions: int) -> Tuple[VectorIndex, CacheItems, Dict[str, Any]]:
    """Validate and decode an export without touching any live state."""
    metadata = validate_export(blob, dimensions)
    index = VectorIndex.deserialize(blob["serializedIndex"])
    if index.dimensions != dimensions:
        raise DimensionMismatchError(expected=dimensions, actual=index.dimensions)
    return index, _cache_items(blob.get("partialEmbeddingCache"), dimensions), metadata


def dumps_export(blob: Dict[str, Any]) -> str:
    return json.dumps(blob, ensure_ascii=False)


def loads_export(text) -> Dict[str, Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise FormatError("Index export is not valid JSON", {"error": str(exc)}) from exc


def save_export(blob: Dict[str, Any], path: Optional[str] = None) -> str:
    path = path or os.path.join(INDEX_STORE_DIR, DEFAULT_EXPORT_FILE)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(dumps_export(blob))
    return path


def load_export(path: Optional[str] = None) -> Dict[str, Any]:
    path = path or os.path.join(INDEX_STORE_DIR, DEFAULT_EXPORT_FILE)
    with open(path, "r", encoding="utf-8") as f:
        return loads_export(f.read())
