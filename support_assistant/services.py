"""Assemble the retrieval-and-grounding pipeline from settings."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from .chat.engine import ChatEngine
from .chat.escalation import EscalationPolicy, ExternalEscalation
from .chat.external import ExternalKnowledgeSource, PerplexityKnowledgeSource
from .chat.llm import EmbeddingBackend, GenerationBackend, OpenAIChatModel, OpenAIEmbedder
from .chat.quality import QualityGate
from .chat.synthesizer import AnswerSynthesizer
from .config import Settings
from .indexing.indexer import EmbeddingIndexer
from .indexing.monitor import IndexingHealthMonitor
from .models import Document, SourceType
from .retrieval.context import ContextFormatter
from .retrieval.orchestrator import RetrievalOrchestrator
from .storage.datastore import Datastore, JsonFileDatastore
from .storage.vector_store import NumpyVectorStore, VectorStore
from .tracking.audit import AuditSink, LoggingAuditSink
from .tracking.usage import UsageLedger

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    datastore: Datastore
    vector_store: Optional[VectorStore]
    ledger: UsageLedger
    audit: AuditSink
    indexer: EmbeddingIndexer
    retriever: RetrievalOrchestrator
    engine: ChatEngine
    health: IndexingHealthMonitor

    def create_document(
        self,
        name: str,
        *,
        raw_content: str = "",
        source_type: SourceType = SourceType.TEXT,
        source_ref: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Document:
        document = Document(
            id=uuid.uuid4().hex[:12],
            name=name,
            raw_content=raw_content,
            source_type=source_type,
            source_ref=source_ref,
            language=language or self.settings.default_language,
        )
        return self.datastore.save_document(document)

    def ingest(self, document_id: str) -> asyncio.Task:
        return self.indexer.ingest(document_id)

    async def answer(
        self,
        query: str,
        user_id: Optional[str] = None,
        widget_id: Optional[str] = None,
        use_documents: bool = True,
    ) -> str:
        return await self.engine.answer(
            query, user_id=user_id, widget_id=widget_id, use_documents=use_documents
        )


def build_services(
    settings: Settings,
    *,
    datastore: Optional[Datastore] = None,
    vector_store: Optional[VectorStore] = None,
    embedder: Optional[EmbeddingBackend] = None,
    generator: Optional[GenerationBackend] = None,
    fallback_generator: Optional[GenerationBackend] = None,
    external_source: Optional[ExternalKnowledgeSource] = None,
    audit: Optional[AuditSink] = None,
) -> Services:
    """Wire every component. Any collaborator can be injected instead of built."""

    datastore = datastore or JsonFileDatastore(settings.store_dir)
    if vector_store is None and settings.use_vector_store:
        vector_store = NumpyVectorStore(settings.store_dir / "vectors")
    ledger = UsageLedger(datastore)
    audit = audit or LoggingAuditSink()

    openai_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
    if embedder is None:
        embedder = OpenAIEmbedder(
            api_key=openai_key,
            model=settings.embedding_model,
            timeout=settings.provider_timeout_seconds,
        )
    if generator is None:
        generator = OpenAIChatModel(
            api_key=openai_key,
            model=settings.generation_model,
            timeout=settings.provider_timeout_seconds,
        )
        if fallback_generator is None and settings.fallback_generation_model:
            fallback_generator = OpenAIChatModel(
                api_key=openai_key,
                model=settings.fallback_generation_model,
                timeout=settings.provider_timeout_seconds,
            )
    if external_source is None and settings.perplexity_api_key:
        external_source = PerplexityKnowledgeSource(
            api_key=settings.perplexity_api_key.get_secret_value(),
            ledger=ledger,
            model=settings.external_search_model,
            timeout=settings.provider_timeout_seconds,
        )

    indexer = EmbeddingIndexer(
        datastore,
        embedder,
        ledger,
        vector_store=vector_store,
        max_chunk_size=settings.max_chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )
    retriever = RetrievalOrchestrator(
        datastore,
        embedder,
        ledger,
        vector_store=vector_store,
        similarity_threshold=settings.similarity_threshold,
        keyword_boost=settings.keyword_boost,
        max_results=settings.max_results,
        merged_content_cap=settings.merged_content_cap,
        tier_timeout=settings.tier_timeout_seconds,
        reference_facts=settings.static_reference_facts,
    )
    synthesizer = AnswerSynthesizer(generator, ledger, fallback=fallback_generator)
    escalation = None
    if settings.escalation_enabled:
        escalation = ExternalEscalation(
            external_source, synthesizer, EscalationPolicy(settings.escalation_topics)
        )
    engine = ChatEngine(
        retriever,
        ContextFormatter(settings.context_char_budget),
        synthesizer,
        QualityGate(),
        escalation=escalation,
        temperature=settings.temperature,
        default_language=settings.default_language,
        behavior_instructions=settings.behavior_instructions,
    )
    health = IndexingHealthMonitor(
        datastore,
        audit,
        stale_threshold_minutes=settings.stale_threshold_minutes,
        interval_minutes=settings.monitor_interval_minutes,
        initial_delay_seconds=settings.monitor_initial_delay_seconds,
    )
    logger.debug(
        "Services built (store=%s, vector_store=%s, external=%s)",
        settings.store_dir,
        type(vector_store).__name__ if vector_store else None,
        type(external_source).__name__ if external_source else None,
    )
    return Services(
        settings=settings,
        datastore=datastore,
        vector_store=vector_store,
        ledger=ledger,
        audit=audit,
        indexer=indexer,
        retriever=retriever,
        engine=engine,
        health=health,
    )
