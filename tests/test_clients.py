import json
from types import SimpleNamespace

import pytest
import requests

from pdfrag.embeddings import JinaEmbeddingClient, is_transient
from pdfrag.llm import GroqChatClient


def _response(status, body=None):
    resp = requests.Response()
    resp.status_code = status
    resp.url = "https://api.jina.ai/v1/embeddings"
    resp._content = json.dumps(body or {}).encode("utf-8")
    return resp


def _groq(create):
    client = GroqChatClient("gsk_" + "x" * 30, model="llama-test")
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client


@pytest.mark.asyncio
async def test_jina_client_posts_payload_and_reads_first_embedding(monkeypatch):
    sent = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        sent.update(url=url, headers=headers, json=json)
        return _response(200, {"data": [{"embedding": [1, 2.5, -3]}]})

    monkeypatch.setattr(requests, "post", fake_post)
    client = JinaEmbeddingClient("jina_" + "k" * 30, model="jina-test", dimensions=3)
    vector = await client.embed("hello world")

    assert vector == [1.0, 2.5, -3.0]
    assert sent["json"] == {"model": "jina-test", "input": ["hello world"], "dimensions": 3}
    assert sent["headers"]["Authorization"] == "Bearer jina_" + "k" * 30


@pytest.mark.parametrize("status,transient", [(503, True), (429, True), (400, False)])
@pytest.mark.asyncio
async def test_jina_http_errors_are_classified(monkeypatch, status, transient):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: _response(status))
    client = JinaEmbeddingClient("jina_" + "k" * 30)
    with pytest.raises(requests.HTTPError) as info:
        await client.embed("hello")
    assert is_transient(info.value) is transient


@pytest.mark.asyncio
async def test_groq_complete_maps_content_and_usage():
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  An answer.  "))],
            usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3, total_tokens=10),
        )

    completion = await _groq(create).complete([{"role": "user", "content": "hi"}], temperature=0, max_tokens=20)
    assert completion.content == "An answer."
    assert completion.usage == {"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10}
    assert calls[0]["model"] == "llama-test"
    assert calls[0]["max_tokens"] == 20


@pytest.mark.asyncio
async def test_groq_complete_without_usage():
    async def create(**kwargs):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None))], usage=None)

    completion = await _groq(create).complete([], model="llama-rerank")
    assert completion.content == ""
    assert completion.usage == {}


@pytest.mark.asyncio
async def test_groq_stream_skips_empty_chunks():
    calls = []

    def chunk(content):
        return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])

    async def create(**kwargs):
        calls.append(kwargs)

        async def chunks():
            for item in (SimpleNamespace(choices=[]), chunk("Hel"), chunk(None), chunk(""), chunk("lo")):
                yield item

        return chunks()

    deltas = [d async for d in _groq(create).stream([{"role": "user", "content": "hi"}])]
    assert deltas == ["Hel", "lo"]
    assert calls[0]["stream"] is True
