import logging
import re
from typing import List

from config import RERANK_MODEL
from pdfrag.types import SearchResult

logger = logging.getLogger(__name__)

PASSAGE_PREVIEW_CHARS = 300

RERANK_PROMPT = """Task: Rank these text passages by relevance to the query.

Query: "{query}"

Passages:
{passages}

Return ONLY the passage numbers in order of relevance (most to least relevant), separated by commas.
Example: 3,1,5,2,4"""


def build_rerank_prompt(query: str, results: List[SearchResult]) -> str:
    passages = "\n\n".join(f"[{i}] {r.text[:PASSAGE_PREVIEW_CHARS]}..." for i, r in enumerate(results, start=1))
    return RERANK_PROMPT.format(query=query, passages=passages)


def parse_ranking(content: str, count: int) -> List[int]:
    """0-based indices from a "3,1,2" style answer; invalid and repeated numbers are dropped."""
    order: List[int] = []
    for token in (content or "").split(","):
        match = re.search(r"\d+", token)
        if not match:
            continue
        idx = int(match.group()) - 1
        if 0 <= idx < count and idx not in order:
            order.append(idx)
    return order


class LLMReranker:
    """Reorders candidates with a chat model; never fails the caller."""

    def __init__(self, chat, model: str = RERANK_MODEL):
        self.chat = chat
        self.model = model

    async def rerank(self, query: str, results: List[SearchResult]) -> List[SearchResult]:
        if len(results) < 2:
            return list(results)

        prompt = build_rerank_prompt(query, results)
        try:
            completion = await self.chat.complete(
                [{"role": "user", "content": prompt}],
                temperature=0,
                max_tokens=max(50, 4 * len(results)),
                model=self.model,
            )
        except Exception as exc:
            logger.warning("Reranking failed, keeping original order: %s", exc)
            return list(results)

        ranking = parse_ranking(completion.content, len(results))
        if not ranking:
            logger.warning("Could not parse rerank output %r, keeping original order", (completion.content or "")[:80])
            return list(results)

        ranked = [results[i] for i in ranking]
        ranked.extend(r for i, r in enumerate(results) if i not in ranking)
        return ranked
