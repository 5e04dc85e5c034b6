"""Generate answers from retrieved context with a primary and a fallback model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..errors import ProviderCallFailed, SupportAssistantError
from ..tracking.usage import OPERATION_TEXT, UsageLedger, estimate_tokens
from .llm import GenerationBackend
from .prompts import (
    build_external_prompts,
    build_general_prompt,
    build_system_prompt,
    build_user_prompt,
)

logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    temperature: float = 0.3
    language: str = "en"
    force_extraction: bool = False
    behavior_instructions: str = ""
    user_id: Optional[str] = None
    widget_id: Optional[str] = None


class AnswerSynthesizer:
    """Turn a query and its context into an answer.

    Every provider attempt, successful or not, is written to the usage ledger
    before this returns or raises.
    """

    def __init__(
        self,
        generator: GenerationBackend,
        ledger: UsageLedger,
        *,
        fallback: Optional[GenerationBackend] = None,
    ) -> None:
        self.generator = generator
        self.fallback = fallback
        self.ledger = ledger

    async def synthesize(self, query: str, context: str, config: GenerationConfig) -> str:
        system_prompt = build_system_prompt(
            context,
            language=config.language,
            force_extraction=config.force_extraction,
            behavior_instructions=config.behavior_instructions,
        )
        user_prompt = build_user_prompt(query, language=config.language)
        return await self._generate(system_prompt, user_prompt, config)

    async def synthesize_general(self, query: str, config: GenerationConfig) -> str:
        """Answer without document context."""

        system_prompt = build_general_prompt(
            language=config.language, behavior_instructions=config.behavior_instructions
        )
        return await self._generate(system_prompt, query, config)

    async def synthesize_with_external(
        self, query: str, prior_answer: str, external_info: str, config: GenerationConfig
    ) -> str:
        prompts = build_external_prompts(
            query,
            prior_answer,
            external_info,
            language=config.language,
            behavior_instructions=config.behavior_instructions,
        )
        return await self._generate(prompts["system"], prompts["user"], config)

    # ------------------------------------------------------------------
    async def _generate(self, system_prompt: str, user_prompt: str, config: GenerationConfig) -> str:
        backends: List[GenerationBackend] = [self.generator]
        if self.fallback is not None:
            backends.append(self.fallback)

        last_error: Optional[Exception] = None
        for backend in backends:
            try:
                answer = await backend.complete(system_prompt, user_prompt, config.temperature)
            except Exception as exc:
                last_error = exc
                logger.warning("Generation with %s failed: %s", backend.model_name, exc)
                self.ledger.record(
                    model_name=backend.model_name,
                    provider=backend.provider_name,
                    operation_type=OPERATION_TEXT,
                    token_count=estimate_tokens(system_prompt, user_prompt),
                    success=False,
                    user_id=config.user_id,
                    widget_id=config.widget_id,
                    error_message=str(exc),
                )
                continue

            self.ledger.record(
                model_name=backend.model_name,
                provider=backend.provider_name,
                operation_type=OPERATION_TEXT,
                token_count=estimate_tokens(system_prompt, user_prompt, answer),
                success=True,
                user_id=config.user_id,
                widget_id=config.widget_id,
            )
            return answer

        reason = last_error.message if isinstance(last_error, SupportAssistantError) else last_error
        raise ProviderCallFailed(
            f"All generation providers failed: {reason}",
            provider=self.generator.provider_name,
            details={"models": [backend.model_name for backend in backends]},
        ) from last_error
