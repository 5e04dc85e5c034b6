"""Escalate ungrounded answers to an external knowledge source."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from .external import ExternalKnowledgeSource
from .synthesizer import AnswerSynthesizer, GenerationConfig

logger = logging.getLogger(__name__)


class EscalationPolicy:
    """Topic allow-list deciding which queries may leave the corpus.

    Topics match on word boundaries, with an optional trailing ``s``.
    """

    def __init__(self, topics: Iterable[str]) -> None:
        self.topics: List[str] = [topic.strip().lower() for topic in topics if topic.strip()]
        self._patterns = [
            re.compile(rf"\b{re.escape(topic)}s?\b", re.IGNORECASE) for topic in self.topics
        ]

    def is_eligible(self, query: str) -> bool:
        return any(pattern.search(query) for pattern in self._patterns)


class ExternalEscalation:
    def __init__(
        self,
        source: Optional[ExternalKnowledgeSource],
        synthesizer: AnswerSynthesizer,
        policy: EscalationPolicy,
    ) -> None:
        self.source = source
        self.synthesizer = synthesizer
        self.policy = policy

    def is_eligible(self, query: str) -> bool:
        if self.source is None or not self.source.is_available():
            return False
        return self.policy.is_eligible(query)

    async def escalate(
        self,
        query: str,
        prior_answer: str,
        language: str = "en",
        config: Optional[GenerationConfig] = None,
    ) -> Optional[str]:
        """Return an answer enriched with external material, or ``None``.

        ``None`` means the prior answer should stand: the query is not
        eligible, the source found nothing, or any step failed.
        """

        if not self.is_eligible(query):
            return None
        config = config or GenerationConfig(language=language)

        try:
            external_info = await self.source.search(query, language)
            if not external_info:
                return None
            answer = await self.synthesizer.synthesize_with_external(
                query, prior_answer, external_info, config
            )
        except Exception:
            logger.warning("External escalation failed for query %r", query[:80], exc_info=True)
            return None

        logger.info("Answer escalated to external source %s", self.source.name)
        return answer or None
