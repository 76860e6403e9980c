import pytest
import requests

from pdfrag.cache import EmbeddingCache
from pdfrag.embeddings import EmbeddingGenerator, is_transient
from pdfrag.errors import EmbeddingError


def _http_error(status):
    response = requests.Response()
    response.status_code = status
    return requests.HTTPError(f"{status} error", response=response)


def _generator(client, max_retries=3, dimensions=64):
    return EmbeddingGenerator(
        client, EmbeddingCache(100), dimensions=dimensions, max_retries=max_retries, base_delay=0, jitter=0
    )


def test_is_transient():
    assert is_transient(_http_error(429))
    assert is_transient(_http_error(503))
    assert is_transient(requests.ConnectionError("reset"))
    assert is_transient(TimeoutError())
    assert not is_transient(_http_error(400))
    assert not is_transient(ValueError("bad input"))


@pytest.mark.asyncio
async def test_cache_hit_skips_remote_call(embedding_client):
    gen = _generator(embedding_client)
    first = await gen.embed("the same passage")
    second = await gen.embed("the  same passage ")
    assert first == second
    assert len(embedding_client.calls) == 1
    assert gen.calls == 1


@pytest.mark.asyncio
async def test_transient_failures_are_retried(embedding_client):
    embedding_client.failures = [_http_error(503), requests.ConnectionError("reset")]
    gen = _generator(embedding_client)
    vector = await gen.embed("retry me")
    assert len(vector) == 64
    assert len(embedding_client.calls) == 3


@pytest.mark.asyncio
async def test_non_transient_failure_is_not_retried(embedding_client):
    embedding_client.failures = [_http_error(400)]
    gen = _generator(embedding_client)
    with pytest.raises(EmbeddingError) as info:
        await gen.embed("bad request")
    assert len(embedding_client.calls) == 1
    assert info.value.details["transient"] is False


@pytest.mark.asyncio
async def test_retries_are_bounded(embedding_client):
    embedding_client.failures = [_http_error(429)] * 10
    gen = _generator(embedding_client, max_retries=2)
    with pytest.raises(EmbeddingError):
        await gen.embed("rate limited")
    assert len(embedding_client.calls) == 3


@pytest.mark.asyncio
async def test_wrong_dimension_is_rejected(embedding_client):
    gen = _generator(embedding_client, dimensions=32)
    with pytest.raises(EmbeddingError):
        await gen.embed("some text")


@pytest.mark.asyncio
async def test_empty_text_is_rejected(embedding_client):
    with pytest.raises(EmbeddingError):
        await _generator(embedding_client).embed("   ")
    assert embedding_client.calls == []


@pytest.mark.asyncio
async def test_embed_batch_keeps_order_and_reports_progress(embedding_client, vectorize):
    gen = _generator(embedding_client)
    texts = [f"passage number {i}" for i in range(5)]
    progress = []
    vectors = await gen.embed_batch(texts, batch_size=2, batch_delay=0, on_batch=lambda d, t: progress.append((d, t)))
    assert vectors == [vectorize(t) for t in texts]
    assert progress == [(2, 5), (4, 5), (5, 5)]
