"""Core domain models for the support assistant."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class SourceType(str, Enum):
    TEXT = "text"
    FILE = "file"
    WEBSITE = "website"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    INDEXED = "indexed"
    ERROR = "error"


@dataclass
class Document:
    """An operator-curated document and its indexing state."""

    id: str
    name: str
    raw_content: str = ""
    source_type: SourceType = SourceType.TEXT
    source_ref: Optional[str] = None
    language: str = "en"
    status: DocumentStatus = DocumentStatus.PENDING
    progress: int = 0
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["source_type"] = self.source_type.value
        payload["status"] = self.status.value
        payload["created_at"] = self.created_at.isoformat()
        payload["updated_at"] = self.updated_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        values = dict(data)
        values["source_type"] = SourceType(values.get("source_type", SourceType.TEXT))
        values["status"] = DocumentStatus(values.get("status", DocumentStatus.PENDING))
        values["created_at"] = _parse_datetime(values["created_at"])
        values["updated_at"] = _parse_datetime(values["updated_at"])
        return cls(**values)


@dataclass
class Chunk:
    """A bounded slice of a document, the unit of embedding and retrieval."""

    id: str
    document_id: str
    chunk_index: int
    content: str
    content_hash: str
    embedding: Optional[List[float]] = None
    language: str = "en"
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        values = dict(data)
        values["created_at"] = _parse_datetime(values["created_at"])
        return cls(**values)


@dataclass
class KnowledgeEntry:
    """The queryable projection of an embedded chunk."""

    source_type: str
    source_id: str
    content: str
    embedding: List[float]
    language: str
    is_verified: bool = True
    relevance_score: float = 0.0
    chunk_index: int = 0
    document_name: str = ""


@dataclass
class RetrievalResult:
    """Per-query context for one document, possibly merged from several chunks."""

    document_id: Optional[str]
    document_name: str
    content: str
    relevance_score: float
    source_tier: str = ""
    is_reference: bool = False

    @property
    def citation(self) -> str:
        """Return a human readable citation string."""

        if self.is_reference:
            return self.document_name
        return f"{self.document_name} ({self.document_id})"


@dataclass(frozen=True)
class UsageRecord:
    """Outcome of a single provider call. Never mutated after creation."""

    model_name: str
    provider: str
    operation_type: str
    token_count: int
    success: bool
    user_id: Optional[str] = None
    widget_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageRecord":
        values = dict(data)
        values["created_at"] = _parse_datetime(values["created_at"])
        return cls(**values)
