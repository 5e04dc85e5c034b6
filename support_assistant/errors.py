"""Exception hierarchy for the retrieval-and-grounding core."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SupportAssistantError(Exception):
    """Base exception carrying a message and optional context."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ContentUnavailable(SupportAssistantError):
    """The document has nothing that can be chunked."""


class ProviderUnavailable(SupportAssistantError):
    """A provider is missing credentials or configuration."""


class ProviderCallFailed(SupportAssistantError):
    """An upstream provider call failed or timed out."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        details["provider"] = provider
        self.provider = provider
        super().__init__(message, details)


class DocumentNotFound(SupportAssistantError):
    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}", {"document_id": document_id})


class IndexingStuck(SupportAssistantError):
    """A document stayed in ``processing`` past the staleness threshold.

    The health monitor builds one of these per stuck document and stores its
    message on the document; it is never raised to callers.
    """

    def __init__(self, document_id: str, stuck_minutes: int, progress: int) -> None:
        self.document_id = document_id
        self.stuck_minutes = stuck_minutes
        self.progress = progress
        super().__init__(
            "Indexing was automatically recovered after being stuck in processing "
            f"for {stuck_minutes} minutes at {progress}% progress. Re-ingest the "
            "document to index it again.",
            {"document_id": document_id},
        )
