"""Primary datastore for documents, chunks and usage records.

The primary store is authoritative: retrieval tiers that do not depend on the
vector store read from here, and the usage ledger appends here.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..errors import DocumentNotFound
from ..models import Chunk, Document, DocumentStatus, KnowledgeEntry, UsageRecord, utcnow

logger = logging.getLogger(__name__)


class Datastore(ABC):
    """CRUD interface over documents, chunks and usage records."""

    @abstractmethod
    def save_document(self, document: Document) -> Document: ...

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[Document]: ...

    @abstractmethod
    def list_documents(self, status: Optional[DocumentStatus] = None) -> List[Document]: ...

    @abstractmethod
    def update_document(self, document_id: str, **fields: Any) -> Document: ...

    @abstractmethod
    def delete_document(self, document_id: str) -> None: ...

    @abstractmethod
    def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Store ``chunks`` in one write."""

    def save_chunk(self, chunk: Chunk) -> None:
        self.save_chunks([chunk])

    @abstractmethod
    def delete_chunks(self, document_id: str) -> int: ...

    @abstractmethod
    def list_chunks(
        self, document_id: Optional[str] = None, language: Optional[str] = None
    ) -> List[Chunk]: ...

    @abstractmethod
    def append_usage_record(self, record: UsageRecord) -> None: ...

    @abstractmethod
    def list_usage_records(self, limit: Optional[int] = None) -> List[UsageRecord]: ...

    def list_knowledge_entries(
        self, language: Optional[str] = None, verified_only: bool = True
    ) -> List[KnowledgeEntry]:
        """Project embedded chunks into knowledge entries for in-process search.

        Chunks whose embedding failed are not part of the projection.
        """

        entries: List[KnowledgeEntry] = []
        names: Dict[str, str] = {}
        for chunk in self.list_chunks(language=language):
            if not chunk.embedding:
                continue
            if chunk.document_id not in names:
                document = self.get_document(chunk.document_id)
                names[chunk.document_id] = document.name if document else chunk.document_id
            entries.append(
                KnowledgeEntry(
                    source_type="document",
                    source_id=chunk.document_id,
                    content=chunk.content,
                    embedding=chunk.embedding,
                    language=chunk.language,
                    is_verified=True,
                    chunk_index=chunk.chunk_index,
                    document_name=names[chunk.document_id],
                )
            )
        if verified_only:
            entries = [entry for entry in entries if entry.is_verified]
        return entries


class InMemoryDatastore(Datastore):
    """Thread-safe datastore kept entirely in memory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: Dict[str, Document] = {}
        self._chunks: Dict[str, Chunk] = {}
        self._usage: List[UsageRecord] = []

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def save_document(self, document: Document) -> Document:
        with self._lock:
            self._documents[document.id] = document
            self._persist_documents()
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            return self._documents.get(document_id)

    def list_documents(self, status: Optional[DocumentStatus] = None) -> List[Document]:
        with self._lock:
            documents = list(self._documents.values())
        if status is not None:
            documents = [doc for doc in documents if doc.status == status]
        return sorted(documents, key=lambda doc: doc.created_at)

    def update_document(self, document_id: str, **fields: Any) -> Document:
        """Update ``fields`` on a document, bumping ``updated_at`` unless it is given."""

        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise DocumentNotFound(document_id)
            for name, value in fields.items():
                if not hasattr(document, name):
                    raise AttributeError(f"Document has no field {name!r}")
                setattr(document, name, value)
            if "updated_at" not in fields:
                document.updated_at = utcnow()
            self._persist_documents()
            return document

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            if self._documents.pop(document_id, None) is None:
                raise DocumentNotFound(document_id)
            self.delete_chunks(document_id)
            self._persist_documents()

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------
    def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        with self._lock:
            for chunk in chunks:
                self._chunks[chunk.id] = chunk
            self._persist_chunks()

    def delete_chunks(self, document_id: str) -> int:
        with self._lock:
            doomed = [cid for cid, chunk in self._chunks.items() if chunk.document_id == document_id]
            for chunk_id in doomed:
                del self._chunks[chunk_id]
            if doomed:
                self._persist_chunks()
            return len(doomed)

    def list_chunks(
        self, document_id: Optional[str] = None, language: Optional[str] = None
    ) -> List[Chunk]:
        with self._lock:
            chunks = list(self._chunks.values())
        if document_id is not None:
            chunks = [chunk for chunk in chunks if chunk.document_id == document_id]
        if language is not None:
            chunks = [chunk for chunk in chunks if chunk.language == language]
        return sorted(chunks, key=lambda chunk: (chunk.document_id, chunk.chunk_index))

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------
    def append_usage_record(self, record: UsageRecord) -> None:
        with self._lock:
            self._usage.append(record)
            self._persist_usage(record)

    def list_usage_records(self, limit: Optional[int] = None) -> List[UsageRecord]:
        with self._lock:
            records = list(self._usage)
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    # ------------------------------------------------------------------
    # Persistence hooks, no-ops in memory
    # ------------------------------------------------------------------
    def _persist_documents(self) -> None:
        pass

    def _persist_chunks(self) -> None:
        pass

    def _persist_usage(self, record: UsageRecord) -> None:
        pass


class JsonFileDatastore(InMemoryDatastore):
    """Datastore mirrored to JSON files under ``storage_dir``.

    Documents and chunks are rewritten on every change, so callers batch
    chunk writes through ``save_chunks``. Usage records are appended one
    JSON object per line to ``usage.jsonl``.
    """

    def __init__(self, storage_dir: str | Path = "data/store") -> None:
        super().__init__()
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._documents_path = self.storage_dir / "documents.json"
        self._chunks_path = self.storage_dir / "chunks.json"
        self._usage_path = self.storage_dir / "usage.jsonl"
        self._load()

    def _load(self) -> None:
        if self._documents_path.exists():
            with self._documents_path.open("r", encoding="utf-8") as fh:
                for item in json.load(fh):
                    document = Document.from_dict(item)
                    self._documents[document.id] = document
        if self._chunks_path.exists():
            with self._chunks_path.open("r", encoding="utf-8") as fh:
                for item in json.load(fh):
                    chunk = Chunk.from_dict(item)
                    self._chunks[chunk.id] = chunk
        if self._usage_path.exists():
            with self._usage_path.open("r", encoding="utf-8") as fh:
                for line in fh:
                    line = line.strip()
                    if line:
                        self._usage.append(UsageRecord.from_dict(json.loads(line)))
        logger.debug(
            "Loaded %d documents and %d chunks from %s",
            len(self._documents),
            len(self._chunks),
            self.storage_dir,
        )

    def _persist_documents(self) -> None:
        payload = [doc.to_dict() for doc in self._documents.values()]
        with self._documents_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)

    def _persist_chunks(self) -> None:
        payload = [chunk.to_dict() for chunk in self._chunks.values()]
        with self._chunks_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False)

    def _persist_usage(self, record: UsageRecord) -> None:
        with self._usage_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
