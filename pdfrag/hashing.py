import hashlib


def normalize_text(text: str) -> str:
    return " ".join(text.split())


def content_hash(text: str) -> str:
    """Deterministic cache key for a chunk or query; not a security boundary."""
    return hashlib.blake2b(normalize_text(text).encode("utf-8"), digest_size=16).hexdigest()
