import pytest

from pdfrag.chunking import TextSplitter, estimate_tokens, split_text


def _words(n):
    return " ".join(f"word{i}" for i in range(n))


def _merge(chunks):
    merged = chunks[0].split()
    for chunk in chunks[1:]:
        words = chunk.split()
        k = min(len(words), len(merged))
        while k > 0 and words[:k] != merged[-k:]:
            k -= 1
        merged.extend(words[k:])
    return merged


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("abcd") == 2


def test_empty_text_gives_no_chunks():
    assert split_text("", 100, 10) == []
    assert split_text("   \n\t ", 100, 10) == []


def test_short_text_is_single_chunk():
    assert split_text("  A short paragraph.  ", 100, 10) == ["A short paragraph."]


def test_chunks_respect_size_bound():
    text = _words(300)
    chunks = split_text(text, 20, 5)
    assert len(chunks) > 1
    assert all(estimate_tokens(c) <= 20 for c in chunks)


def test_consecutive_chunks_overlap():
    chunks = split_text(_words(200), 20, 5)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert set(prev.split()) & set(nxt.split())


def test_no_words_lost_or_reordered():
    text = _words(250)
    assert _merge(split_text(text, 20, 5)) == text.split()
    assert " ".join(split_text(text, 20, 0)).split() == text.split()


def test_punctuation_and_paragraphs_are_kept():
    text = "First sentence here. Second sentence follows! Is this third?\n\nA new paragraph; with a clause: done."
    chunks = split_text(text, 8, 0)
    joined = " ".join(chunks)
    for token in ("here.", "follows!", "third?", "paragraph;", "clause:", "done."):
        assert token in joined


def test_oversized_word_is_emitted_whole():
    long_word = "x" * 90
    chunks = split_text(f"tiny {long_word} tail", 10, 2)
    assert long_word in chunks


def test_overlap_not_smaller_than_size_is_reduced():
    splitter = TextSplitter(chunk_size=50, chunk_overlap=80)
    assert splitter.chunk_overlap == 10


def test_non_positive_chunk_size_rejected():
    with pytest.raises(ValueError):
        TextSplitter(chunk_size=0)
