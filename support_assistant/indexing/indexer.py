"""Turn documents into embedded, searchable chunks."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set, Tuple

from ..chat.llm import EmbeddingBackend
from ..errors import ContentUnavailable, DocumentNotFound, ProviderUnavailable
from ..models import Chunk, DocumentStatus, utcnow
from ..storage.datastore import Datastore
from ..storage.vector_store import VectorRecord, VectorStore
from ..tracking.usage import UsageLedger
from ..utils.chunking import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE, chunk_text, enumerate_chunks
from .content import resolve_content

logger = logging.getLogger(__name__)

PROGRESS_STEP = 10


class EmbeddingIndexer:
    """Chunk a document, embed every chunk and persist the result.

    The primary datastore receives every chunk in a single write once the
    document is embedded. The vector store, when configured, receives a
    best-effort mirror of the embedded chunks in one batch; its failures are
    logged and never fail indexing. Progress is reported every
    ``PROGRESS_STEP`` percent.
    """

    def __init__(
        self,
        datastore: Datastore,
        embedder: EmbeddingBackend,
        ledger: UsageLedger,
        *,
        vector_store: Optional[VectorStore] = None,
        max_chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        self.datastore = datastore
        self.embedder = embedder
        self.ledger = ledger
        self.vector_store = vector_store
        self.max_chunk_size = max_chunk_size
        self.chunk_overlap = chunk_overlap
        self._tasks: Set[asyncio.Task] = set()

    def ingest(self, document_id: str) -> asyncio.Task:
        """Schedule ``index_document`` in the background and return its task."""

        task = asyncio.create_task(self.index_document(document_id), name=f"index-{document_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fail(self, document_id: str, message: str) -> bool:
        logger.error("Indexing failed for document %s: %s", document_id, message)
        await self._update(document_id, status=DocumentStatus.ERROR, error_message=message)
        return False

    async def index_document(self, document_id: str) -> bool:
        """Index one document. Returns ``False`` and marks it ``error`` on failure."""

        document = self.datastore.get_document(document_id)
        if document is None:
            raise DocumentNotFound(document_id)

        try:
            content = await resolve_content(document)
            if not self.embedder.is_available():
                raise ProviderUnavailable(
                    "Embedding provider is not configured",
                    {"provider": self.embedder.provider_name},
                )
        except (ContentUnavailable, ProviderUnavailable) as exc:
            return await self._fail(document_id, exc.message)

        await self._update(
            document_id, status=DocumentStatus.PROCESSING, progress=0, error_message=None
        )
        await asyncio.to_thread(self.datastore.delete_chunks, document_id)
        if self.vector_store is not None:
            try:
                await self.vector_store.delete_document(document_id)
            except Exception:
                logger.warning(
                    "Could not clear vector store rows for document %s", document_id, exc_info=True
                )

        try:
            candidates = chunk_text(
                content,
                max_chunk_size=self.max_chunk_size,
                overlap_size=self.chunk_overlap,
                language=document.language,
            )
        except ValueError as exc:
            return await self._fail(document_id, str(exc))
        if not candidates:
            return await self._fail(document_id, "Document content is empty")

        chunk_ids = enumerate_chunks(candidates, prefix=document_id)
        total = len(candidates)
        chunks: List[Chunk] = []
        mirrored: List[Tuple[VectorRecord, List[float]]] = []
        reported = 0
        logger.info("Indexing document %s (%d chunks)", document_id, total)

        for chunk_id, candidate in zip(chunk_ids, candidates):
            vector = None
            try:
                vector = await self.ledger.embed(self.embedder, candidate.content)
            except Exception as exc:
                logger.warning(
                    "Embedding failed for chunk %d of document %s: %s",
                    candidate.index,
                    document_id,
                    exc,
                )

            chunks.append(
                Chunk(
                    id=chunk_id,
                    document_id=document_id,
                    chunk_index=candidate.index,
                    content=candidate.content,
                    content_hash=candidate.content_hash,
                    embedding=vector,
                    language=candidate.language,
                )
            )
            if vector is not None:
                mirrored.append(
                    (
                        VectorRecord(
                            document_id=document_id,
                            chunk_index=candidate.index,
                            content=candidate.content,
                            metadata={"document_name": document.name, "language": candidate.language},
                        ),
                        vector,
                    )
                )

            progress = min(int((candidate.index + 1) * 100 / total), 99)
            if progress - reported >= PROGRESS_STEP:
                reported = progress
                await self._update(document_id, progress=progress)

        embedded = len(mirrored)
        if embedded == 0:
            return await self._fail(document_id, "No chunk could be embedded")

        await asyncio.to_thread(self.datastore.save_chunks, chunks)
        await self._mirror(document_id, mirrored)

        await self._update(
            document_id,
            status=DocumentStatus.INDEXED,
            progress=100,
            error_message=None,
            metadata={
                **document.metadata,
                "chunk_count": total,
                "embedded_count": embedded,
                "total_chars": len(content),
                "embedding_model": self.embedder.model_name,
                "processed_at": utcnow().isoformat(),
            },
        )
        logger.info("Indexed document %s: %d/%d chunks embedded", document_id, embedded, total)
        return True

    async def _update(self, document_id: str, **fields) -> None:
        await asyncio.to_thread(self.datastore.update_document, document_id, **fields)

    async def _mirror(
        self, document_id: str, rows: List[Tuple[VectorRecord, List[float]]]
    ) -> None:
        if self.vector_store is None:
            return
        try:
            await self.vector_store.upsert_many(rows)
        except Exception:
            logger.warning(
                "Vector store upsert failed for document %s (%d rows)",
                document_id,
                len(rows),
                exc_info=True,
            )
