"""Recover documents left in ``processing`` by an interrupted indexing run."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..errors import IndexingStuck
from ..models import Document, DocumentStatus, utcnow
from ..storage.datastore import Datastore
from ..tracking.audit import AuditSink

logger = logging.getLogger(__name__)

AUTO_RECOVERY_ACTION = "document_auto_recovery"


class IndexingHealthMonitor:
    """Periodically move stale ``processing`` documents to ``error``."""

    def __init__(
        self,
        datastore: Datastore,
        audit: AuditSink,
        *,
        stale_threshold_minutes: int = 30,
        interval_minutes: float = 10.0,
        initial_delay_seconds: float = 60.0,
    ) -> None:
        self.datastore = datastore
        self.audit = audit
        self.stale_threshold_minutes = stale_threshold_minutes
        self.interval_minutes = interval_minutes
        self.initial_delay_seconds = initial_delay_seconds
        self._task: Optional[asyncio.Task] = None

    def recover_stuck_documents(
        self, stale_threshold_minutes: int, now: Optional[datetime] = None
    ) -> List[Document]:
        """Transition every stale ``processing`` document to ``error``.

        Returns the recovered documents. Each one is handled once: after the
        transition it is no longer ``processing``.
        """

        now = now or utcnow()
        cutoff = now - timedelta(minutes=stale_threshold_minutes)
        recovered: List[Document] = []

        for document in self.datastore.list_documents(status=DocumentStatus.PROCESSING):
            if document.updated_at > cutoff:
                continue
            stuck_minutes = int((now - document.updated_at).total_seconds() // 60)
            stuck = IndexingStuck(document.id, stuck_minutes, document.progress)
            updated = self.datastore.update_document(
                document.id,
                status=DocumentStatus.ERROR,
                progress=0,
                error_message=stuck.message,
            )
            self.audit.emit(
                AUTO_RECOVERY_ACTION,
                {
                    "document_id": document.id,
                    "document_name": document.name,
                    "stuck_minutes": stuck_minutes,
                    "progress": stuck.progress,
                },
            )
            logger.warning(
                "Recovered document %s stuck in processing for %d minutes at %d%%",
                document.id,
                stuck_minutes,
                stuck.progress,
            )
            recovered.append(updated)

        return recovered

    def recover_stuck(self) -> List[Document]:
        return self.recover_stuck_documents(self.stale_threshold_minutes)

    # ------------------------------------------------------------------
    def start(self) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""

        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="indexing-health-monitor")
            logger.info(
                "Indexing health monitor started (every %.1f minutes)", self.interval_minutes
            )
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Indexing health monitor stopped")

    async def _run(self) -> None:
        await asyncio.sleep(self.initial_delay_seconds)
        while True:
            try:
                recovered = await asyncio.to_thread(self.recover_stuck)
                if recovered:
                    logger.info("Health sweep recovered %d documents", len(recovered))
            except Exception:
                logger.exception("Indexing health sweep failed")
            await asyncio.sleep(self.interval_minutes * 60)
