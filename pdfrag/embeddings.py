import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Sequence

import requests
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential, wait_random

from config import (
    EMBED_BATCH_DELAY,
    EMBED_BATCH_SIZE,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_MODEL,
    EMBEDDING_URL,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_JITTER,
)
from pdfrag.cache import EmbeddingCache
from pdfrag.errors import EmbeddingError
from pdfrag.hashing import content_hash

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = {429, 500, 502, 503, 504}


class EmbeddingClient(Protocol):
    async def embed(self, text: str) -> List[float]: ...


def is_transient(exc: BaseException) -> bool:
    """Rate limits, 5xx gateway errors, resets and timeouts are worth retrying."""
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        return response is not None and response.status_code in TRANSIENT_STATUS
    if isinstance(exc, (requests.ConnectionError, requests.Timeout, ConnectionError, TimeoutError)):
        return True
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and status in TRANSIENT_STATUS


class JinaEmbeddingClient:
    def __init__(
        self,
        api_key: str,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        url: str = EMBEDDING_URL,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self.url = url
        self.timeout = timeout

    def _post(self, text: str) -> List[float]:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {"model": self.model, "input": [text], "dimensions": self.dimensions}
        resp = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()["data"]
        return [float(x) for x in data[0]["embedding"]]

    async def embed(self, text: str) -> List[float]:
        return await asyncio.to_thread(self._post, text)


class EmbeddingGenerator:
    """Cache-aware embedding with bounded exponential backoff."""

    def __init__(
        self,
        client: EmbeddingClient,
        cache: Optional[EmbeddingCache] = None,
        dimensions: int = EMBEDDING_DIMENSIONS,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        jitter: float = RETRY_JITTER,
    ):
        self.client = client
        self.cache = cache if cache is not None else EmbeddingCache()
        self.dimensions = dimensions
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.jitter = jitter
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        key = content_hash(text)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        vector = await self._embed_with_retry(text)
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                "Embedding has unexpected dimension",
                {"expected": self.dimensions, "actual": len(vector)},
            )
        self.cache.set(key, vector)
        return vector

    async def embed_batch(
        self,
        texts: Sequence[str],
        batch_size: int = EMBED_BATCH_SIZE,
        batch_delay: float = EMBED_BATCH_DELAY,
        on_batch: Optional[Callable[[int, int], None]] = None,
    ) -> List[List[float]]:
        """Embed in small concurrent batches with a pause between batches.

        Results keep the input order.
        """
        batch_size = max(1, batch_size)
        total = len(texts)
        vectors: List[List[float]] = []
        for start in range(0, total, batch_size):
            batch = texts[start : start + batch_size]
            vectors.extend(await asyncio.gather(*(self.embed(t) for t in batch)))
            done = start + len(batch)
            if on_batch is not None:
                on_batch(done, total)
            if done < total and batch_delay > 0:
                await asyncio.sleep(batch_delay)
        return vectors

    async def _embed_with_retry(self, text: str) -> List[float]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay) + wait_random(0, self.jitter),
            retry=retry_if_exception(is_transient),
            before_sleep=lambda state: logger.warning(
                "Embedding request failed (%s), retry %d/%d",
                state.outcome.exception(),
                state.attempt_number,
                self.max_retries,
            ),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    self.calls += 1
                    return list(await self.client.embed(text))
        except Exception as exc:
            raise EmbeddingError(
                "Embedding request failed",
                {"error": str(exc), "transient": is_transient(exc)},
            ) from exc
