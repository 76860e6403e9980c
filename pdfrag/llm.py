import logging
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Union

from groq import AsyncGroq

from config import LLM_MODEL, MAX_CONTEXT_TOKENS, MAX_TOKENS, TEMPERATURE
from pdfrag.cache import ResponseCache, response_cache_key
from pdfrag.context import assemble_context
from pdfrag.errors import GenerationError
from pdfrag.retriever import Retriever
from pdfrag.types import AnswerResult

logger = logging.getLogger(__name__)

NO_INFORMATION_MESSAGE = "Sorry, I could not find relevant information in the document to answer your question."

DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant that gives precise, detailed answers based only on the provided context.\n"
    "Always cite the relevant pages when possible and be specific.\n"
    "If the context does not contain enough information, say so clearly."
)

Messages = List[Dict[str, str]]


@dataclass
class ChatCompletion:
    content: str
    usage: Dict[str, int] = field(default_factory=dict)


class ChatClient(Protocol):
    async def complete(
        self,
        messages: Messages,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        model: Optional[str] = None,
    ) -> ChatCompletion: ...

    def stream(
        self,
        messages: Messages,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        model: Optional[str] = None,
    ) -> AsyncIterator[str]: ...


class GroqChatClient:
    def __init__(self, api_key: str, model: str = LLM_MODEL):
        self.client = AsyncGroq(api_key=api_key)
        self.model = model

    async def complete(
        self,
        messages: Messages,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        model: Optional[str] = None,
    ) -> ChatCompletion:
        resp = await self.client.chat.completions.create(
            model=model or self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        usage = {}
        if resp.usage is not None:
            usage = {
                "prompt_tokens": resp.usage.prompt_tokens,
                "completion_tokens": resp.usage.completion_tokens,
                "total_tokens": resp.usage.total_tokens,
            }
        return ChatCompletion(content=(resp.choices[0].message.content or "").strip(), usage=usage)

    async def stream(
        self,
        messages: Messages,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        model: Optional[str] = None,
    ) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            model=model or self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta


class StreamingAnswer:
    """Async iterable of text deltas plus the sources they are grounded on.

    `on_complete` runs only once the stream has been read to the end; a
    consumer that stops early leaves `complete` False.
    """

    cached = False

    def __init__(
        self,
        deltas: AsyncIterator[str],
        sources: List[Dict[str, Any]],
        on_complete: Optional[Callable[[str], None]] = None,
        model_id: Optional[str] = None,
    ):
        self.sources = sources
        self.model_id = model_id
        self.text = ""
        self.complete = False
        self._deltas = deltas
        self._on_complete = on_complete
        self._started = False

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("Stream has already been consumed")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        parts: List[str] = []
        try:
            async for delta in self._deltas:
                parts.append(delta)
                yield delta
        except Exception as exc:
            raise GenerationError("Streaming completion failed", {"error": str(exc)}) from exc
        self.text = "".join(parts)
        self.complete = True
        if self._on_complete is not None:
            self._on_complete(self.text)

    async def collect(self) -> str:
        async for _ in self:
            pass
        return self.text


def build_messages(query: str, context: str, system_prompt: Optional[str] = None) -> Messages:
    return [
        {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Document context:\n\n{context}\n\n"
                f"Question: {query}\n\n"
                "Please give a detailed and accurate answer based on the context above."
            ),
        },
    ]


class ResponseGenerator:
    def __init__(
        self,
        retriever: Retriever,
        chat: ChatClient,
        cache: Optional[ResponseCache] = None,
        temperature: float = TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
        max_context_tokens: int = MAX_CONTEXT_TOKENS,
    ):
        self.retriever = retriever
        self.chat = chat
        self.cache = cache if cache is not None else ResponseCache()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_context_tokens = max_context_tokens

    async def generate_response(
        self,
        query: str,
        stream: bool = True,
        system_prompt: Optional[str] = None,
        max_context_tokens: Optional[int] = None,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        use_reranking: bool = True,
        include_context: bool = True,
    ) -> Union[AnswerResult, StreamingAnswer]:
        results = await self.retriever.retrieve(
            query,
            limit=limit,
            threshold=threshold,
            use_reranking=use_reranking,
            include_context=include_context,
        )
        if not results:
            return AnswerResult(answer=NO_INFORMATION_MESSAGE, sources=[])

        sources = [r.metadata() for r in results]
        key = response_cache_key(query, (r.content_hash for r in results))
        hit = self.cache.get(key)
        if hit is not None:
            logger.info("Response cache hit for %r", query[:80])
            return replace(hit, cached=True)

        context = assemble_context(results, max_context_tokens or self.max_context_tokens)
        messages = build_messages(query, context, system_prompt)
        model_id = getattr(self.chat, "model", None)

        if stream:

            def remember(text: str) -> None:
                self.cache.set(key, AnswerResult(answer=text, sources=sources, model_id=model_id))

            deltas = self.chat.stream(messages, temperature=self.temperature, max_tokens=self.max_tokens)
            return StreamingAnswer(deltas, sources, on_complete=remember, model_id=model_id)

        try:
            completion = await self.chat.complete(messages, temperature=self.temperature, max_tokens=self.max_tokens)
        except Exception as exc:
            raise GenerationError("Failed to generate a response", {"error": str(exc)}) from exc

        result = AnswerResult(answer=completion.content, sources=sources, usage=completion.usage, model_id=model_id)
        self.cache.set(key, result)
        return result
