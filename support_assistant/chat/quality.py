"""Decide whether a generated answer is grounded in the retrieved context."""

from __future__ import annotations

from typing import Iterable, Protocol

NO_GROUNDING_PHRASES = (
    # English
    "not found",
    "no information",
    "does not contain",
    "doesn't contain",
    "do not contain",
    "no relevant information",
    "not mentioned",
    "not available in the",
    "i could not find",
    "i couldn't find",
    "unable to find",
    # Portuguese
    "não encontrei",
    "não foi encontrad",
    "não contém",
    "não contêm",
    "não há informações",
    "não há informação",
    "nenhuma informação",
    "não consta",
    "não menciona",
)


class GroundingDetector(Protocol):
    def is_grounded(self, response_text: str) -> bool: ...


class PhraseGroundingDetector:
    """Flag answers that contain a known "no information" phrase."""

    def __init__(self, phrases: Iterable[str] = NO_GROUNDING_PHRASES) -> None:
        self.phrases = tuple(phrase.lower() for phrase in phrases)

    def is_grounded(self, response_text: str) -> bool:
        if not response_text or not response_text.strip():
            return False
        text = response_text.lower()
        return not any(phrase in text for phrase in self.phrases)


class QualityGate:
    def __init__(self, detector: GroundingDetector | None = None) -> None:
        self.detector = detector or PhraseGroundingDetector()

    def is_grounded(self, response_text: str) -> bool:
        return self.detector.is_grounded(response_text)
