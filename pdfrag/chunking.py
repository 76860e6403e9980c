import math
from typing import List, Optional, Sequence, Tuple

from config import CHUNK_OVERLAP, CHUNK_SIZE

DEFAULT_SEPARATORS = ("\n\n", "\n", ". ", "! ", "? ", "; ", ": ", " ")


def estimate_tokens(text) -> int:
    # ~3 characters per token; a heuristic, not a real tokenizer.
    if not text or not isinstance(text, str):
        return 0
    return math.ceil(len(text) / 3)


class TextSplitter:
    """Greedy separator-based splitter with a word-aligned overlap tail.

    Sizes are measured in estimated tokens. Punctuation separators keep their
    mark on the preceding piece and line breaks are kept as joiners, so no
    non-whitespace character of the input is lost.
    """

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        separators: Optional[Sequence[str]] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap >= chunk_size:
            chunk_overlap = max(0, chunk_size // 5)
        self.chunk_size = chunk_size
        self.chunk_overlap = max(0, chunk_overlap)
        self.separators = tuple(separators or DEFAULT_SEPARATORS)

    def split(self, text) -> List[str]:
        if not isinstance(text, str) or not text.strip():
            return []
        text = text.strip()
        if estimate_tokens(text) <= self.chunk_size:
            return [text]

        chunks: List[str] = []
        current = ""
        for joiner, piece in self._split_by_separators(text):
            if not current:
                current = piece
                continue
            if estimate_tokens(current + joiner + piece) <= self.chunk_size:
                current = current + joiner + piece
                continue

            chunks.append(current)
            tail = self._overlap_tail(current)
            if tail and estimate_tokens(tail + " " + piece) <= self.chunk_size:
                current = tail + " " + piece
            else:
                current = piece

        if current:
            chunks.append(current)
        return chunks

    def _split_by_separators(self, text: str) -> List[Tuple[str, str]]:
        # Each piece carries the whitespace that joined it to its predecessor.
        parts: List[Tuple[str, str]] = [("", text)]
        for sep in self.separators:
            mark = sep.strip()
            joiner = sep if not mark else " "
            next_parts: List[Tuple[str, str]] = []
            for lead, part in parts:
                if sep not in part:
                    next_parts.append((lead, part))
                    continue
                pieces = part.split(sep)
                first = True
                for i, piece in enumerate(pieces):
                    if mark and i < len(pieces) - 1:
                        piece = piece + mark
                    piece = piece.strip()
                    if not piece:
                        continue
                    next_parts.append((lead if first else joiner, piece))
                    first = False
            parts = next_parts
        return parts

    def _overlap_tail(self, chunk: str) -> str:
        if self.chunk_overlap <= 0:
            return ""
        words = chunk.split()
        tail: List[str] = []
        for word in reversed(words):
            if estimate_tokens(" ".join([word] + tail)) > self.chunk_overlap:
                break
            tail.insert(0, word)
        if len(tail) == len(words):
            return ""
        return " ".join(tail)


def split_text(text: str, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP) -> List[str]:
    return TextSplitter(chunk_size, chunk_overlap).split(text)
