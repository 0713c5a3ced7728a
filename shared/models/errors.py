"""Error taxonomy of the knowledge bridge.

These errors are raised inside clients and services. They never cross the
KnowledgeService boundary: the facade turns them into Error envelopes.
"""

from typing import Any


class KnowledgeBridgeError(Exception):
    """Base exception for all knowledge bridge errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(KnowledgeBridgeError):
    """Required input is missing or out of range (content, index name, top)."""


class BackendUnavailableError(KnowledgeBridgeError):
    """The search or embedding backend could not be reached or rejected the call."""

    def __init__(self, message: str, status_code: int | None = None, context: dict[str, Any] | None = None):
        super().__init__(message, context)
        self.status_code = status_code


class EmbeddingFailureError(KnowledgeBridgeError):
    """The embedding provider returned no usable vector."""


class PartialDocumentFailureError(KnowledgeBridgeError):
    """The upload call succeeded but the backend reported a per-document failure."""

    def __init__(self, message: str, document_key: str | None = None, context: dict[str, Any] | None = None):
        super().__init__(message, context)
        self.document_key = document_key
