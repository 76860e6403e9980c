import logging
import re

logger = logging.getLogger(__name__)

MAX_IMPORTANCE = 2.0
NEUTRAL_IMPORTANCE = 1.0

_TITLE_LINE = re.compile(r"^[A-Z\s\d.]{3,50}$", re.MULTILINE)
_NUMBER = re.compile(r"\d+\.?\d*")
_LIST_MARKER = re.compile(r"^\s*[\d\-*•]\s+", re.MULTILINE)


def score_importance(text, page_number, total_pages) -> float:
    """Structural relevance multiplier in [1.0, 2.0], independent of any query."""
    if not isinstance(text, str) or not text.strip():
        logger.warning("score_importance got invalid text: %r", type(text).__name__)
        return NEUTRAL_IMPORTANCE
    if (
        isinstance(page_number, bool)
        or isinstance(total_pages, bool)
        or not isinstance(page_number, int)
        or not isinstance(total_pages, int)
        or page_number < 1
        or total_pages < page_number
    ):
        logger.warning("score_importance got invalid page %r of %r", page_number, total_pages)
        return NEUTRAL_IMPORTANCE

    text = text.strip()
    score = 1.0

    # Intro / summary pages
    if page_number <= 3:
        score *= 1.3
    # Conclusion pages
    if page_number > total_pages - 2:
        score *= 1.2
    if _TITLE_LINE.search(text):
        score *= 1.4
    if len(_NUMBER.findall(text)) > 5:
        score *= 1.2
    if _LIST_MARKER.search(text):
        score *= 1.1
    if len(text) > 600:
        score *= 1.1

    return min(score, MAX_IMPORTANCE)
