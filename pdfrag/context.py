from typing import List

from config import MAX_CONTEXT_TOKENS
from pdfrag.chunking import estimate_tokens
from pdfrag.types import SearchResult

PASSAGE_SEPARATOR = "\n\n---\n\n"


def format_passage(result: SearchResult) -> str:
    return f"{result.text} [Page {result.page_number}] [Relevance: {result.score * 100:.1f}%]"


def rank_for_context(results: List[SearchResult]) -> List[SearchResult]:
    return sorted(results, key=lambda r: r.score * r.importance, reverse=True)


def assemble_context(results: List[SearchResult], max_tokens: int = MAX_CONTEXT_TOKENS) -> str:
    """Pack whole passages, best score x importance first, until the budget is hit."""
    parts: List[str] = []
    used = 0
    for result in rank_for_context(results):
        tokens = result.token_count or estimate_tokens(result.text)
        if used + tokens > max_tokens:
            break
        parts.append(format_passage(result))
        used += tokens
    return PASSAGE_SEPARATOR.join(parts)
