"""Utilities for splitting documents into manageable chunks."""

from __future__ import annotations

import hashlib
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple


DEFAULT_CHUNK_SIZE = 1500
DEFAULT_CHUNK_OVERLAP = 150

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


@dataclass
class ChunkCandidate:
    """A chunk ready to be embedded, before it is bound to a document."""

    index: int
    content: str
    content_hash: str
    language: str


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _split_units(text: str, max_chunk_size: int, overlap_size: int) -> List[Tuple[str, str]]:
    """Break ``text`` into (joiner, unit) pairs no larger than a chunk body.

    Paragraphs are preferred, then sentences, then fixed-width slices. The
    joiner is the separator that restores the unit's place in the original
    text when it is appended to the preceding unit.
    """

    # Leave room for the overlap tail and a separator in front of each unit.
    body_cap = max_chunk_size - overlap_size - 2
    if body_cap < 1:
        body_cap = max_chunk_size - overlap_size
    units: List[Tuple[str, str]] = []

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text)]
    for paragraph in (p for p in paragraphs if p):
        if len(paragraph) <= body_cap:
            units.append(("\n\n", paragraph))
            continue

        joiner = "\n\n"
        for sentence in (s for s in _SENTENCE_BREAK.split(paragraph) if s):
            if len(sentence) <= body_cap:
                units.append((joiner, sentence))
            else:
                for start in range(0, len(sentence), body_cap):
                    units.append((joiner if start == 0 else "", sentence[start : start + body_cap]))
            joiner = " "
    return units


def chunk_text(
    text: str,
    *,
    max_chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap_size: int = DEFAULT_CHUNK_OVERLAP,
    language: str = "en",
) -> List[ChunkCandidate]:
    """Split ``text`` into overlapping chunks of at most ``max_chunk_size`` characters.

    Every chunk after the first starts with the last ``overlap_size``
    characters of the chunk before it. Whitespace-only input yields nothing.
    """

    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
    if overlap_size < 0 or overlap_size >= max_chunk_size:
        raise ValueError(
            f"overlap_size must be >= 0 and smaller than max_chunk_size, got {overlap_size}"
        )
    if not text or not text.strip():
        return []

    pieces: List[str] = []
    current = ""
    for joiner, unit in _split_units(text, max_chunk_size, overlap_size):
        if not current:
            current = unit
            continue
        candidate = current + joiner + unit
        if len(candidate) <= max_chunk_size:
            current = candidate
            continue
        pieces.append(current)
        tail = current[-overlap_size:] if overlap_size else ""
        if not tail:
            current = unit
        elif len(tail) + len(joiner) + len(unit) > max_chunk_size:
            current = tail + unit
        else:
            current = tail + joiner + unit
    if current:
        pieces.append(current)

    return [
        ChunkCandidate(index=idx, content=piece, content_hash=content_hash(piece), language=language)
        for idx, piece in enumerate(pieces)
    ]


def enumerate_chunks(chunks: Iterable[ChunkCandidate], prefix: str) -> List[str]:
    """Derive stable chunk identifiers from ``prefix`` and each chunk index."""

    chunk_list = list(chunks)
    total_digits = max(4, math.ceil(math.log10(len(chunk_list) + 1))) if chunk_list else 4
    return [f"{prefix}-{str(chunk.index).zfill(total_digits)}" for chunk in chunk_list]
