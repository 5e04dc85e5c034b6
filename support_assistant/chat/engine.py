"""Chat orchestration for the support assistant."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import SupportAssistantError
from ..models import RetrievalResult
from ..retrieval.context import ContextFormatter
from ..retrieval.orchestrator import RetrievalOrchestrator
from .escalation import ExternalEscalation
from .prompts import apology, normalize_language
from .quality import QualityGate
from .synthesizer import AnswerSynthesizer, GenerationConfig

logger = logging.getLogger(__name__)

PASS_NORMAL = "normal"
PASS_FORCE_EXTRACTION = "force_extraction"
PASS_EXTERNAL = "external"


@dataclass
class ChatResponse:
    answer: str
    references: List[RetrievalResult]
    grounded: bool = False
    escalated: bool = False
    passes: List[str] = field(default_factory=list)


class ChatEngine:
    """Glue together retrieval, generation, quality gating and escalation.

    A query runs through at most three passes: a normal prompt, a
    force-extraction prompt over the same context when the first answer is
    ungrounded, and external escalation when that is still ungrounded and the
    query is eligible. The last generated text is returned either way.
    """

    def __init__(
        self,
        retriever: RetrievalOrchestrator,
        formatter: ContextFormatter,
        synthesizer: AnswerSynthesizer,
        quality_gate: QualityGate,
        *,
        escalation: Optional[ExternalEscalation] = None,
        temperature: float = 0.3,
        default_language: str = "en",
        behavior_instructions: str = "",
    ) -> None:
        self.retriever = retriever
        self.formatter = formatter
        self.synthesizer = synthesizer
        self.quality_gate = quality_gate
        self.escalation = escalation
        self.temperature = temperature
        self.default_language = default_language
        self.behavior_instructions = behavior_instructions

    async def ask(
        self,
        query: str,
        *,
        user_id: Optional[str] = None,
        widget_id: Optional[str] = None,
        use_documents: bool = True,
        language: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> ChatResponse:
        lang = normalize_language(language or self.default_language)
        config = GenerationConfig(
            temperature=self.temperature,
            language=lang,
            behavior_instructions=self.behavior_instructions,
            user_id=user_id,
            widget_id=widget_id,
        )

        if not use_documents:
            try:
                answer = await self.synthesizer.synthesize_general(query, config)
            except SupportAssistantError as exc:
                logger.error("General answer generation failed: %s", exc)
                return ChatResponse(answer=apology(lang), references=[])
            return ChatResponse(answer=answer, references=[], grounded=True, passes=[PASS_NORMAL])

        references = await self.retriever.retrieve(
            query,
            max_results,
            normalize_language(language) if language else None,
            user_id=user_id,
            widget_id=widget_id,
        )
        context = self.formatter.format(references)
        passes: List[str] = []

        try:
            answer = await self.synthesizer.synthesize(query, context, config)
        except SupportAssistantError as exc:
            logger.error("Answer generation failed: %s", exc)
            return ChatResponse(answer=apology(lang), references=references)
        passes.append(PASS_NORMAL)
        grounded = self.quality_gate.is_grounded(answer)

        if not grounded:
            logger.info("Answer ungrounded, retrying with force extraction")
            config.force_extraction = True
            try:
                retried = await self.synthesizer.synthesize(query, context, config)
            except SupportAssistantError as exc:
                # Keep the first answer; it is still ungrounded.
                logger.error("Force-extraction generation failed: %s", exc)
            else:
                answer = retried
                passes.append(PASS_FORCE_EXTRACTION)
                grounded = self.quality_gate.is_grounded(answer)

        escalated = False
        if not grounded and self.escalation is not None:
            config.force_extraction = False
            external_answer = await self.escalation.escalate(query, answer, lang, config)
            if external_answer:
                answer = external_answer
                escalated = True
                passes.append(PASS_EXTERNAL)

        if not answer.strip():
            answer = apology(lang)

        return ChatResponse(
            answer=answer,
            references=references,
            grounded=grounded,
            escalated=escalated,
            passes=passes,
        )

    async def answer(
        self,
        query: str,
        user_id: Optional[str] = None,
        widget_id: Optional[str] = None,
        use_documents: bool = True,
        language: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> str:
        """Answer ``query`` and return only the text."""

        response = await self.ask(
            query,
            user_id=user_id,
            widget_id=widget_id,
            use_documents=use_documents,
            language=language,
            max_results=max_results,
        )
        return response.answer
