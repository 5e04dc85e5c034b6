"""Cascading retrieval over the document corpus.

Tiers are tried in order and the first one that yields anything wins:

1. hybrid: vector-store similarity plus a lexical keyword boost
2. semantic: in-process cosine similarity over the primary store
3. keyword: literal keyword matches over raw chunk text
4. static: configured reference facts, labelled as not document-sourced

A tier that raises or times out counts as empty.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..chat.llm import EmbeddingBackend
from ..models import RetrievalResult
from ..storage.datastore import Datastore
from ..storage.vector_store import VectorStore, cosine_similarities
from ..tracking.usage import UsageLedger
from .keywords import extract_keywords

logger = logging.getLogger(__name__)

TIER_HYBRID = "hybrid"
TIER_SEMANTIC = "semantic"
TIER_KEYWORD = "keyword"
TIER_STATIC = "static"

REFERENCE_DOCUMENT_NAME = "Reference information (not from the document corpus)"


def consolidate_results(
    candidates: Sequence[RetrievalResult], max_results: int, merged_content_cap: int = 2500
) -> List[RetrievalResult]:
    """Merge candidates per document and keep the ``max_results`` best.

    Chunks of the same document are concatenated best-first, skipping text
    already present, until the merged text would pass ``merged_content_cap``.
    The merged score is the best constituent score.
    """

    merged: Dict[Optional[str], RetrievalResult] = {}
    for candidate in sorted(candidates, key=lambda c: c.relevance_score, reverse=True):
        existing = merged.get(candidate.document_id)
        if existing is None:
            merged[candidate.document_id] = RetrievalResult(
                document_id=candidate.document_id,
                document_name=candidate.document_name,
                content=candidate.content,
                relevance_score=candidate.relevance_score,
                source_tier=candidate.source_tier,
                is_reference=candidate.is_reference,
            )
            continue
        existing.relevance_score = max(existing.relevance_score, candidate.relevance_score)
        if candidate.content in existing.content:
            continue
        if len(existing.content) + 2 + len(candidate.content) > merged_content_cap:
            continue
        existing.content = f"{existing.content}\n\n{candidate.content}"

    ranked = sorted(merged.values(), key=lambda r: r.relevance_score, reverse=True)
    return ranked[:max_results]


class RetrievalOrchestrator:
    """Find the context a query should be answered from."""

    def __init__(
        self,
        datastore: Datastore,
        embedder: EmbeddingBackend,
        ledger: UsageLedger,
        *,
        vector_store: Optional[VectorStore] = None,
        similarity_threshold: float = 0.7,
        keyword_boost: float = 0.05,
        max_results: int = 5,
        merged_content_cap: int = 2500,
        tier_timeout: float = 20.0,
        reference_facts: Sequence[str] = (),
    ) -> None:
        self.datastore = datastore
        self.embedder = embedder
        self.ledger = ledger
        self.vector_store = vector_store
        self.similarity_threshold = similarity_threshold
        self.keyword_boost = keyword_boost
        self.max_results = max_results
        self.merged_content_cap = merged_content_cap
        self.tier_timeout = tier_timeout
        self.reference_facts = list(reference_facts)

    async def retrieve(
        self,
        query: str,
        max_results: Optional[int] = None,
        language: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        widget_id: Optional[str] = None,
    ) -> List[RetrievalResult]:
        """Return the most relevant results for ``query``, best first.

        An empty list means every tier came back empty, including the static
        tier, which only happens when no reference facts are configured. An
        explicit ``max_results`` of 0 also returns nothing.
        """

        limit = max_results if max_results is not None else self.max_results
        if limit <= 0:
            return []
        keywords = extract_keywords(query)
        vector = await self._embed_query(query, user_id=user_id, widget_id=widget_id)

        tiers: List[Tuple[str, Callable[[], Awaitable[List[RetrievalResult]]]]] = []
        if vector is not None:
            store = self.vector_store
            if store is not None:
                tiers.append(
                    (TIER_HYBRID, lambda: self._hybrid(store, vector, keywords, limit, language))
                )
            tiers.append((TIER_SEMANTIC, lambda: self._semantic(vector, language)))
        tiers.append((TIER_KEYWORD, lambda: self._keyword(keywords, language)))

        for name, tier in tiers:
            candidates = await self._run_tier(name, tier)
            if candidates:
                for candidate in candidates:
                    candidate.source_tier = name
                results = consolidate_results(candidates, limit, self.merged_content_cap)
                logger.info(
                    "Retrieved %d results via %s tier for query %r", len(results), name, query[:80]
                )
                return results

        return self._static()

    # ------------------------------------------------------------------
    async def _embed_query(
        self, query: str, *, user_id: Optional[str], widget_id: Optional[str]
    ) -> Optional[List[float]]:
        if not self.embedder.is_available():
            logger.info("Embedding provider unavailable; skipping vector tiers")
            return None
        try:
            return await self.ledger.embed(
                self.embedder, query, user_id=user_id, widget_id=widget_id
            )
        except Exception as exc:
            logger.warning("Query embedding failed, falling back to keyword search: %s", exc)
            return None

    async def _run_tier(
        self, name: str, tier: Callable[[], Awaitable[List[RetrievalResult]]]
    ) -> List[RetrievalResult]:
        try:
            return await asyncio.wait_for(tier(), timeout=self.tier_timeout)
        except asyncio.TimeoutError:
            logger.warning("Retrieval tier %s timed out after %.1fs", name, self.tier_timeout)
        except Exception:
            logger.warning("Retrieval tier %s failed", name, exc_info=True)
        return []

    def _document_name(self, document_id: str, cache: Dict[str, str]) -> str:
        if document_id not in cache:
            document = self.datastore.get_document(document_id)
            cache[document_id] = document.name if document else document_id
        return cache[document_id]

    async def _hybrid(
        self,
        store: VectorStore,
        vector: List[float],
        keywords: List[str],
        limit: int,
        language: Optional[str],
    ) -> List[RetrievalResult]:
        matches = await store.query(vector, self.similarity_threshold, limit * 2)
        names: Dict[str, str] = {}
        results: List[RetrievalResult] = []
        for match in matches:
            record = match.record
            record_language = record.metadata.get("language")
            if language and record_language and record_language != language:
                continue
            text = record.content.lower()
            hits = sum(1 for keyword in keywords if keyword in text)
            score = min(1.0, match.score + self.keyword_boost * hits)
            name = record.metadata.get("document_name") or self._document_name(
                record.document_id, names
            )
            results.append(
                RetrievalResult(
                    document_id=record.document_id,
                    document_name=name,
                    content=record.content,
                    relevance_score=score,
                )
            )
        return results

    async def _semantic(self, vector: List[float], language: Optional[str]) -> List[RetrievalResult]:
        entries = self.datastore.list_knowledge_entries(language=language, verified_only=True)
        entries = [entry for entry in entries if len(entry.embedding) == len(vector)]
        if not entries:
            return []

        matrix = np.asarray([entry.embedding for entry in entries], dtype=np.float32)
        similarities = cosine_similarities(matrix, vector)

        results: List[RetrievalResult] = []
        for idx in similarities.argsort()[::-1]:
            score = float(similarities[idx])
            if score < self.similarity_threshold:
                break
            entry = entries[idx]
            results.append(
                RetrievalResult(
                    document_id=entry.source_id,
                    document_name=entry.document_name,
                    content=entry.content,
                    relevance_score=score,
                )
            )
        return results

    async def _keyword(self, keywords: List[str], language: Optional[str]) -> List[RetrievalResult]:
        if not keywords:
            return []
        names: Dict[str, str] = {}
        results: List[RetrievalResult] = []
        for chunk in self.datastore.list_chunks(language=language):
            text = chunk.content.lower()
            hits = sum(1 for keyword in keywords if keyword in text)
            if not hits:
                continue
            results.append(
                RetrievalResult(
                    document_id=chunk.document_id,
                    document_name=self._document_name(chunk.document_id, names),
                    content=chunk.content,
                    relevance_score=hits / len(keywords),
                )
            )
        return results

    def _static(self) -> List[RetrievalResult]:
        if not self.reference_facts:
            logger.info("Every retrieval tier came back empty")
            return []
        logger.info("Falling back to static reference facts")
        return [
            RetrievalResult(
                document_id=None,
                document_name=REFERENCE_DOCUMENT_NAME,
                content="\n".join(self.reference_facts),
                relevance_score=0.0,
                source_tier=TIER_STATIC,
                is_reference=True,
            )
        ]
