"""Append-only ledger of provider calls."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..chat.llm import EmbeddingBackend
from ..models import UsageRecord
from ..storage.datastore import Datastore

logger = logging.getLogger(__name__)

OPERATION_EMBEDDING = "embedding"
OPERATION_TEXT = "text"
OPERATION_EXTERNAL_SEARCH = "external_search"


def estimate_tokens(*texts: Optional[str]) -> int:
    """Rough token estimate used for every ledger entry: four characters per token."""

    return sum(len(text) for text in texts if text) // 4


class UsageLedger:
    """Records the outcome of every embedding, generation and external call.

    Records are frozen once written. Writing never raises: a failure to store
    a record is logged and the provider call's own outcome is preserved.
    """

    def __init__(self, datastore: Datastore) -> None:
        self.datastore = datastore

    def record(
        self,
        *,
        model_name: str,
        provider: str,
        operation_type: str,
        token_count: int,
        success: bool,
        user_id: Optional[str] = None,
        widget_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> UsageRecord:
        record = UsageRecord(
            model_name=model_name,
            provider=provider,
            operation_type=operation_type,
            token_count=token_count,
            success=success,
            user_id=user_id,
            widget_id=widget_id,
            error_message=error_message,
        )
        try:
            self.datastore.append_usage_record(record)
        except Exception:
            logger.exception("Failed to write usage record for %s/%s", provider, model_name)
        return record

    def recent(self, limit: Optional[int] = None) -> List[UsageRecord]:
        """Return stored records, newest last."""

        return self.datastore.list_usage_records(limit)

    async def embed(
        self,
        embedder: EmbeddingBackend,
        text: str,
        *,
        user_id: Optional[str] = None,
        widget_id: Optional[str] = None,
    ) -> List[float]:
        """Embed ``text`` with ``embedder`` and ledger the call either way."""

        try:
            vector = await embedder.embed(text)
        except Exception as exc:
            self.record(
                model_name=embedder.model_name,
                provider=embedder.provider_name,
                operation_type=OPERATION_EMBEDDING,
                token_count=estimate_tokens(text),
                success=False,
                user_id=user_id,
                widget_id=widget_id,
                error_message=str(exc),
            )
            raise
        self.record(
            model_name=embedder.model_name,
            provider=embedder.provider_name,
            operation_type=OPERATION_EMBEDDING,
            token_count=estimate_tokens(text),
            success=True,
            user_id=user_id,
            widget_id=widget_id,
        )
        return vector
