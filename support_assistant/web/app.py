"""FastAPI application exposing the support assistant over JSON."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, load_settings
from ..errors import DocumentNotFound
from ..models import Document, RetrievalResult, SourceType
from ..services import Services, build_services
from ..utils.logger import configure_logging

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    """Request payload for the chat endpoint."""

    question: str = Field(..., description="User question to answer")
    user_id: Optional[str] = None
    widget_id: Optional[str] = None
    use_documents: bool = True
    language: Optional[str] = Field(default=None, description="Reply language, en or pt")
    max_results: Optional[int] = Field(
        default=None,
        ge=1,
        le=20,
        description="Maximum number of documents to retrieve",
    )


class ReferencePayload(BaseModel):
    """Serialized reference returned with an answer."""

    document_id: Optional[str]
    document_name: str
    citation: str
    score: float
    content: str
    source_tier: str
    is_reference: bool

    @classmethod
    def from_result(cls, result: RetrievalResult) -> "ReferencePayload":
        return cls(
            document_id=result.document_id,
            document_name=result.document_name,
            citation=result.citation,
            score=result.relevance_score,
            content=result.content,
            source_tier=result.source_tier,
            is_reference=result.is_reference,
        )


class ChatResponsePayload(BaseModel):
    """Response payload for the chat endpoint."""

    answer: str
    grounded: bool
    escalated: bool
    passes: List[str]
    references: List[ReferencePayload]


class DocumentCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    content: str = ""
    source_type: SourceType = SourceType.TEXT
    source_ref: Optional[str] = None
    language: Optional[str] = None
    ingest: bool = True


class DocumentPayload(BaseModel):
    id: str
    name: str
    source_type: str
    source_ref: Optional[str]
    language: str
    status: str
    progress: int
    error_message: Optional[str]
    metadata: dict
    created_at: str
    updated_at: str

    @classmethod
    def from_document(cls, document: Document) -> "DocumentPayload":
        data = document.to_dict()
        data.pop("raw_content", None)
        return cls(**data)


class UsageRecordPayload(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    provider: str
    operation_type: str
    token_count: int
    success: bool
    user_id: Optional[str]
    widget_id: Optional[str]
    error_message: Optional[str]
    created_at: str


def create_app(
    settings: Optional[Settings] = None,
    *,
    services: Optional[Services] = None,
    start_monitor: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI app with shared dependencies."""

    if services is None:
        settings = settings or load_settings()
        configure_logging(settings.log_level)
        services = build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_monitor:
            services.health.start()
        try:
            yield
        finally:
            await services.health.stop()

    app = FastAPI(title="Support Assistant", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    def _get_document(document_id: str) -> Document:
        document = services.datastore.get_document(document_id)
        if document is None:
            raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
        return document

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/chat", response_model=ChatResponsePayload)
    async def chat_endpoint(payload: ChatRequest) -> ChatResponsePayload:
        question = payload.question.strip()
        if not question:
            raise HTTPException(status_code=400, detail="Question cannot be empty.")
        response = await services.engine.ask(
            question,
            user_id=payload.user_id,
            widget_id=payload.widget_id,
            use_documents=payload.use_documents,
            language=payload.language,
            max_results=payload.max_results,
        )
        return ChatResponsePayload(
            answer=response.answer,
            grounded=response.grounded,
            escalated=response.escalated,
            passes=response.passes,
            references=[ReferencePayload.from_result(r) for r in response.references],
        )

    @app.post("/api/documents", response_model=DocumentPayload, status_code=201)
    async def create_document(payload: DocumentCreateRequest) -> DocumentPayload:
        if payload.source_type == SourceType.TEXT and not payload.content.strip():
            raise HTTPException(status_code=400, detail="Text documents need content.")
        if payload.source_type != SourceType.TEXT and not (payload.source_ref or payload.content):
            raise HTTPException(status_code=400, detail="A source_ref is required for this source type.")
        document = services.create_document(
            payload.name,
            raw_content=payload.content,
            source_type=payload.source_type,
            source_ref=payload.source_ref,
            language=payload.language,
        )
        if payload.ingest:
            services.ingest(document.id)
        return DocumentPayload.from_document(document)

    @app.get("/api/documents/{document_id}", response_model=DocumentPayload)
    async def get_document(document_id: str) -> DocumentPayload:
        return DocumentPayload.from_document(_get_document(document_id))

    @app.post("/api/documents/{document_id}/ingest", response_model=DocumentPayload)
    async def ingest_document(document_id: str, wait: bool = False) -> DocumentPayload:
        _get_document(document_id)
        if wait:
            await services.indexer.index_document(document_id)
        else:
            services.ingest(document_id)
        return DocumentPayload.from_document(_get_document(document_id))

    @app.delete("/api/documents/{document_id}", status_code=204)
    async def delete_document(document_id: str) -> None:
        try:
            services.datastore.delete_document(document_id)
        except DocumentNotFound as exc:
            raise HTTPException(status_code=404, detail=exc.message) from exc
        if services.vector_store is not None:
            try:
                await services.vector_store.delete_document(document_id)
            except Exception:
                logger.warning("Vector store cleanup failed for %s", document_id, exc_info=True)

    @app.post("/api/maintenance/recover-stuck", response_model=List[DocumentPayload])
    async def recover_stuck() -> List[DocumentPayload]:
        recovered = await asyncio.to_thread(services.health.recover_stuck)
        return [DocumentPayload.from_document(doc) for doc in recovered]

    @app.get("/api/usage", response_model=List[UsageRecordPayload])
    async def usage(limit: int = 100) -> List[UsageRecordPayload]:
        if limit < 1:
            raise HTTPException(status_code=400, detail="limit must be positive.")
        return [UsageRecordPayload(**record.to_dict()) for record in services.ledger.recent(limit)]

    return app
