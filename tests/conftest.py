import hashlib
import re

import pytest

from pdfrag.llm import ChatCompletion
from pdfrag.pipeline import RagPipeline
from pdfrag.types import RagConfig

DIM = 64


def bag_of_words_vector(text, dim=DIM):
    vec = [0.0] * dim
    for token in re.findall(r"\w+", text.lower()):
        vec[int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dim] += 1.0
    if not any(vec):
        vec[0] = 1.0
    return vec


class FakeEmbeddingClient:
    def __init__(self, dim=DIM):
        self.dim = dim
        self.calls = []
        self.failures = []
        self.overrides = {}

    async def embed(self, text):
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        if text in self.overrides:
            return list(self.overrides[text])
        return bag_of_words_vector(text, self.dim)


class FakeChatClient:
    model = "fake-chat"

    def __init__(self, answer="The answer is on page 1."):
        self.answer = answer
        self.rerank_answer = ""
        self.fail = False
        self.fail_rerank = False
        self.completions = []
        self.rerank_calls = []
        self.streams = []

    async def complete(self, messages, temperature=0.2, max_tokens=100, model=None):
        if model is not None:
            self.rerank_calls.append(messages)
            if self.fail_rerank:
                raise RuntimeError("rerank endpoint down")
            return ChatCompletion(self.rerank_answer)
        self.completions.append(messages)
        if self.fail:
            raise RuntimeError("completion endpoint down")
        return ChatCompletion(self.answer, {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15})

    async def stream(self, messages, temperature=0.2, max_tokens=100, model=None):
        self.streams.append(messages)
        if self.fail:
            raise RuntimeError("completion endpoint down")
        for i, part in enumerate(self.answer.split(" ")):
            yield part if i == 0 else " " + part


@pytest.fixture
def vectorize():
    return bag_of_words_vector


@pytest.fixture
def embedding_client():
    return FakeEmbeddingClient()


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def rag_config():
    return RagConfig(
        embedding_model="fake-embed",
        embedding_dimensions=DIM,
        chat_model="fake-chat",
        rerank_model="fake-rerank",
        chunk_size=200,
        chunk_overlap=20,
        similarity_threshold=0.0,
        batch_size=2,
        batch_delay=0.0,
        retry_delay=0.0,
        retry_jitter=0.0,
        ocr_fallback=False,
    )


@pytest.fixture
def pipeline(embedding_client, chat_client, rag_config):
    return RagPipeline(embedding_client, chat_client, rag_config)
