"""
Exception hierarchy for the PDF RAG pipeline.

Mandatory steps (query embedding, the final completion call, index import
validation) raise these; optional steps catch their own failures and log a
warning instead.
"""

from typing import Any, Dict, Optional


class PdfRagError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InitializationError(PdfRagError):
    """Raised when a credential is missing/invalid or the index cannot be created."""


class ExtractionError(PdfRagError):
    """Raised when page text cannot be extracted from a PDF."""


class EmbeddingError(PdfRagError):
    """Raised when the embedding endpoint keeps failing after retries."""


class RetrievalError(PdfRagError):
    """Raised when the search subsystem cannot serve a query."""


class GenerationError(PdfRagError):
    """Raised when the chat/completion call fails."""


class FormatError(PdfRagError):
    """Raised when an index export is malformed or has the wrong version."""


class DimensionMismatchError(PdfRagError):
    """Raised when an index export was built with a different embedding dimension."""

    def __init__(self, expected: int, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Index uses {actual} dimensions but the system is configured for {expected}",
            {"expected": expected, "actual": actual},
        )
