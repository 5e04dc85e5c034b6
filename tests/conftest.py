"""Shared test doubles for the provider, store and sink interfaces."""

from typing import Any, Dict, List, Optional, Sequence

import pytest

from support_assistant.chat.external import ExternalKnowledgeSource
from support_assistant.chat.llm import EmbeddingBackend, GenerationBackend
from support_assistant.config import Settings
from support_assistant.errors import ProviderCallFailed
from support_assistant.indexing.indexer import EmbeddingIndexer
from support_assistant.models import Document
from support_assistant.storage.datastore import InMemoryDatastore
from support_assistant.storage.vector_store import VectorMatch, VectorStore
from support_assistant.tracking.audit import AuditSink
from support_assistant.tracking.usage import UsageLedger

VOCABULARY = ("vs1", "vpa", "vddram", "reset", "firmware")


class VocabularyEmbedder(EmbeddingBackend):
    """Embeds text as term counts over a small fixed vocabulary."""

    model_name = "vocabulary-embedder"
    provider_name = "test"

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY, fail_on: Optional[str] = None):
        self.vocabulary = tuple(vocabulary)
        self.fail_on = fail_on
        self.available = True
        self.calls: List[str] = []

    def is_available(self) -> bool:
        return self.available

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise ProviderCallFailed("embedding failed", provider=self.provider_name)
        lowered = text.lower()
        return [float(lowered.count(term)) for term in self.vocabulary]


class ScriptedGenerator(GenerationBackend):
    """Returns queued replies in order; queued exceptions are raised instead."""

    provider_name = "test"

    def __init__(self, *replies: Any, model_name: str = "scripted-model"):
        self.replies = list(replies)
        self.model_name = model_name
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "temperature": temperature}
        )
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FailingVectorStore(VectorStore):
    def __init__(self) -> None:
        self.query_calls = 0
        self.upsert_calls = 0

    async def upsert(self, document_id, chunk_index, content, vector, metadata=None) -> None:
        self.upsert_calls += 1
        raise RuntimeError("vector store is down")

    async def query(self, vector, threshold, limit) -> List[VectorMatch]:
        self.query_calls += 1
        raise RuntimeError("vector store is down")

    async def delete_document(self, document_id: str) -> None:
        raise RuntimeError("vector store is down")


class FakeExternalSource(ExternalKnowledgeSource):
    name = "fake-external"

    def __init__(self, result: Optional[str] = "External notes.", error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.queries: List[str] = []

    async def search(self, query: str, language: str = "en") -> Optional[str]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingAuditSink(AuditSink):
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def emit(self, action: str, details: Dict[str, Any]) -> None:
        self.events.append((action, details))


@pytest.fixture
def datastore():
    return InMemoryDatastore()


@pytest.fixture
def ledger(datastore):
    return UsageLedger(datastore)


@pytest.fixture
def embedder():
    return VocabularyEmbedder()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key=None,
        perplexity_api_key=None,
        store_dir=tmp_path / "store",
        use_vector_store=False,
        max_chunk_size=200,
        chunk_overlap=20,
    )


@pytest.fixture
def indexer(datastore, embedder, ledger):
    return EmbeddingIndexer(datastore, embedder, ledger, max_chunk_size=200, chunk_overlap=20)


@pytest.fixture
def add_document(datastore):
    """Store a text document and return it."""

    def _add(document_id: str, content: str, name: Optional[str] = None, language: str = "en"):
        document = Document(
            id=document_id, name=name or document_id, raw_content=content, language=language
        )
        return datastore.save_document(document)

    return _add
