"""Wrappers around the OpenAI API for embedding and chat models."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from ..errors import ProviderCallFailed, ProviderUnavailable

logger = logging.getLogger(__name__)


class EmbeddingBackend(ABC):
    """Capability interface for embedding providers."""

    model_name: str
    provider_name: str = "unknown"

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding vector of ``text``.

        Raises ``ProviderUnavailable`` when the provider is not configured and
        ``ProviderCallFailed`` when the call itself fails.
        """

    def is_available(self) -> bool:
        return True


class GenerationBackend(ABC):
    """Capability interface for text generation providers."""

    model_name: str
    provider_name: str = "unknown"

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """Return the model's reply to ``user_prompt`` under ``system_prompt``."""

    def is_available(self) -> bool:
        return True


class _OpenAIClientMixin:
    provider_name = "openai"

    def __init__(self, *, api_key: Optional[str], timeout: float) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client: AsyncOpenAI | None = None

    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if not self._api_key:
            raise ProviderUnavailable("OpenAI API key is not configured", {"provider": "openai"})
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client


class OpenAIEmbedder(_OpenAIClientMixin, EmbeddingBackend):
    """Thin wrapper around OpenAI's embedding endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(api_key=api_key, timeout=timeout)
        self.model_name = model

    async def embed(self, text: str) -> List[float]:
        client = self.client
        try:
            response = await client.embeddings.create(model=self.model_name, input=text)
        except OpenAIError as exc:
            raise ProviderCallFailed(
                f"Embedding request failed: {exc}",
                provider=self.provider_name,
                details={"model": self.model_name},
            ) from exc
        return list(response.data[0].embedding)


class OpenAIChatModel(_OpenAIClientMixin, GenerationBackend):
    """Wrapper around OpenAI's Chat Completions API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(api_key=api_key, timeout=timeout)
        self.model_name = model

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        client = self.client
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                temperature=temperature,
            )
        except OpenAIError as exc:
            raise ProviderCallFailed(
                f"Completion request failed: {exc}",
                provider=self.provider_name,
                details={"model": self.model_name},
            ) from exc
        choice = response.choices[0]
        return choice.message.content or ""
