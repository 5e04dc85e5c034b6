"""External knowledge sources consulted when the corpus cannot ground an answer."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from ..errors import ProviderCallFailed, ProviderUnavailable
from ..tracking.usage import OPERATION_EXTERNAL_SEARCH, UsageLedger, estimate_tokens

logger = logging.getLogger(__name__)

PERPLEXITY_API_URL = "https://api.perplexity.ai/chat/completions"


class ExternalKnowledgeSource(ABC):
    """Capability interface of an external search provider."""

    name: str = "base"

    @abstractmethod
    async def search(self, query: str, language: str = "en") -> Optional[str]:
        """Return supplementary text for ``query``, or ``None`` when nothing was found."""

    def is_available(self) -> bool:
        return True


class PerplexityKnowledgeSource(ExternalKnowledgeSource):
    """Search-augmented answers from Perplexity's chat completions API.

    Perplexity models search the web themselves, so the synthesized reply is
    used as the supplementary text and its citations are appended as sources.
    """

    name = "perplexity"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        ledger: UsageLedger,
        model: str = "sonar",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self.ledger = ledger
        self.model = model
        self.timeout = timeout
        self.http = session or requests.Session()

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _build_payload(self, query: str, language: str) -> dict:
        if language == "pt":
            instruction = (
                "Pesquise informações técnicas sobre a pergunta a seguir e responda em português, "
                "com valores e procedimentos específicos quando existirem."
            )
        else:
            instruction = (
                "Search for technical information about the following question and reply in "
                "English, with specific values and procedures where they exist."
            )
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": instruction},
                {"role": "user", "content": query},
            ],
            "max_tokens": 1024,
        }

    def _post(self, payload: dict) -> dict:
        response = self.http.post(
            PERPLEXITY_API_URL,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def search(self, query: str, language: str = "en") -> Optional[str]:
        if not self._api_key:
            raise ProviderUnavailable("Perplexity API key is not configured", {"provider": self.name})

        payload = self._build_payload(query, language)
        try:
            data = await asyncio.to_thread(self._post, payload)
        except (requests.RequestException, ValueError) as exc:
            self.ledger.record(
                model_name=self.model,
                provider=self.name,
                operation_type=OPERATION_EXTERNAL_SEARCH,
                token_count=estimate_tokens(query),
                success=False,
                error_message=str(exc),
            )
            raise ProviderCallFailed(f"Perplexity search failed: {exc}", provider=self.name) from exc

        content = ""
        if data.get("choices"):
            content = data["choices"][0].get("message", {}).get("content", "") or ""
        citations = data.get("citations") or []

        self.ledger.record(
            model_name=self.model,
            provider=self.name,
            operation_type=OPERATION_EXTERNAL_SEARCH,
            token_count=estimate_tokens(query, content),
            success=True,
        )

        if not content.strip():
            logger.info("Perplexity returned no content for query: %s", query)
            return None
        if citations:
            sources = "\n".join(f"- {url}" for url in citations)
            content = f"{content}\n\nSources:\n{sources}"
        logger.info("Perplexity returned %d characters for query: %s", len(content), query)
        return content
