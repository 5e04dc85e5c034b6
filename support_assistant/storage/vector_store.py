"""A lightweight vector store backed by NumPy.

The vector store mirrors embedded chunks for similarity search. It is
best-effort: the primary datastore stays authoritative and the two may
diverge when a mirror write fails.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class VectorRecord:
    document_id: str
    chunk_index: int
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    """A vector-store row whose similarity cleared the query threshold."""

    record: VectorRecord
    score: float


def cosine_similarities(matrix: np.ndarray, query: Sequence[float]) -> np.ndarray:
    """Cosine similarity of every row of ``matrix`` against ``query``."""

    query_vec = np.asarray(query, dtype=np.float32)
    if query_vec.ndim != 1:
        raise ValueError("Query embedding must be a 1D vector")
    if matrix.shape[1] != query_vec.shape[0]:
        raise ValueError("Embedding dimension mismatch")
    doc_norms = np.linalg.norm(matrix, axis=1) + 1e-10
    query_norm = np.linalg.norm(query_vec) + 1e-10
    return (matrix @ query_vec) / (doc_norms * query_norm)


class VectorStore(ABC):
    """Capability interface of a similarity-search mirror."""

    @abstractmethod
    async def upsert(
        self,
        document_id: str,
        chunk_index: int,
        content: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None: ...

    async def upsert_many(self, rows: Sequence[Tuple[VectorRecord, Sequence[float]]]) -> None:
        """Upsert several rows; stores that persist on write override this to write once."""

        for record, vector in rows:
            await self.upsert(
                record.document_id, record.chunk_index, record.content, vector, record.metadata
            )

    @abstractmethod
    async def query(
        self, vector: Sequence[float], threshold: float, limit: int
    ) -> List[VectorMatch]: ...

    @abstractmethod
    async def delete_document(self, document_id: str) -> None: ...


class NumpyVectorStore(VectorStore):
    """Persist embeddings and associated chunk text on disk."""

    def __init__(self, storage_dir: str | Path = "data/store") -> None:
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._vectors_path = self.storage_dir / "vectors.npy"
        self._meta_path = self.storage_dir / "metadata.json"
        self._lock = threading.Lock()
        self._records: List[VectorRecord] = []
        self._embeddings: np.ndarray | None = None
        self._load()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._meta_path.exists() and self._vectors_path.exists():
            with self._meta_path.open("r", encoding="utf-8") as fh:
                meta = json.load(fh)
            self._records = [VectorRecord(**item) for item in meta.get("records", [])]
            self._embeddings = np.load(self._vectors_path)
            if self._embeddings.shape[0] != len(self._records):
                logger.warning(
                    "Vector store at %s is inconsistent (%d vectors, %d records); starting empty",
                    self.storage_dir,
                    self._embeddings.shape[0],
                    len(self._records),
                )
                self._records = []
                self._embeddings = None

    def _save(self) -> None:
        payload = {"records": [asdict(record) for record in self._records]}
        with self._meta_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
        if self._embeddings is not None:
            np.save(self._vectors_path, self._embeddings)
        elif self._vectors_path.exists():
            self._vectors_path.unlink()

    # ------------------------------------------------------------------
    def _upsert_rows(self, rows: Sequence[Tuple[VectorRecord, Sequence[float]]]) -> None:
        if not rows:
            return
        matrix = np.asarray([vector for _, vector in rows], dtype=np.float32)
        if matrix.ndim != 2:
            raise ValueError("Embeddings must share one dimension")
        with self._lock:
            if self._embeddings is not None and matrix.shape[1] != self._embeddings.shape[1]:
                raise ValueError("Embedding dimension mismatch")
            positions = {
                (record.document_id, record.chunk_index): i
                for i, record in enumerate(self._records)
            }
            stored = len(self._records)
            appended: List[np.ndarray] = []
            for (record, _), row in zip(rows, matrix):
                key = (record.document_id, record.chunk_index)
                position = positions.get(key)
                if position is not None:
                    self._records[position] = record
                    if position < stored:
                        self._embeddings[position] = row
                    else:
                        appended[position - stored] = row
                    continue
                positions[key] = len(self._records)
                self._records.append(record)
                appended.append(row)
            if appended:
                new_rows = np.vstack(appended)
                if self._embeddings is None:
                    self._embeddings = new_rows
                else:
                    self._embeddings = np.vstack([self._embeddings, new_rows])
            self._save()

    def _query(self, vector: Sequence[float], threshold: float, limit: int) -> List[VectorMatch]:
        with self._lock:
            if not self._records or self._embeddings is None:
                return []
            similarities = cosine_similarities(self._embeddings, vector)
            records = list(self._records)

        top_indices = similarities.argsort()[::-1]
        matches: List[VectorMatch] = []
        for idx in top_indices:
            score = float(similarities[idx])
            if score < threshold:
                break
            matches.append(VectorMatch(record=records[idx], score=score))
            if len(matches) >= limit:
                break
        return matches

    def _delete_document(self, document_id: str) -> None:
        with self._lock:
            keep = [i for i, record in enumerate(self._records) if record.document_id != document_id]
            if len(keep) == len(self._records):
                return
            self._records = [self._records[i] for i in keep]
            if keep and self._embeddings is not None:
                self._embeddings = self._embeddings[keep]
            else:
                self._embeddings = None
            self._save()

    # ------------------------------------------------------------------
    async def upsert(
        self,
        document_id: str,
        chunk_index: int,
        content: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        record = VectorRecord(
            document_id=document_id,
            chunk_index=chunk_index,
            content=content,
            metadata=dict(metadata or {}),
        )
        await asyncio.to_thread(self._upsert_rows, [(record, vector)])

    async def upsert_many(self, rows: Sequence[Tuple[VectorRecord, Sequence[float]]]) -> None:
        await asyncio.to_thread(self._upsert_rows, list(rows))

    async def query(
        self, vector: Sequence[float], threshold: float, limit: int
    ) -> List[VectorMatch]:
        """Return at most ``limit`` rows scoring at or above ``threshold``, best first."""

        return await asyncio.to_thread(self._query, vector, threshold, limit)

    async def delete_document(self, document_id: str) -> None:
        await asyncio.to_thread(self._delete_document, document_id)

    # ------------------------------------------------------------------
    @property
    def record_count(self) -> int:
        return len(self._records)

    @property
    def embedding_dimension(self) -> int | None:
        if self._embeddings is None:
            return None
        return int(self._embeddings.shape[1])
